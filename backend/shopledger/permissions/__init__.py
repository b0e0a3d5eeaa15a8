# Overview: Permission system package.
# Re-exports all public APIs.

from .definitions import ACTION_DEFINITIONS, Action, Role
from .roles import ROLE_PERMISSIONS
from .helpers import (
    get_action_definition,
    has_permission,
    normalize_role,
    permissions_for,
)

__all__ = [
    "Action",
    "Role",
    "ACTION_DEFINITIONS",
    "ROLE_PERMISSIONS",
    "get_action_definition",
    "has_permission",
    "normalize_role",
    "permissions_for",
]

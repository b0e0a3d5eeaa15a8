# Overview: Utility functions for role normalization and permission checks.

from .definitions import ACTION_DEFINITIONS, LEGACY_ROLE_ALIASES, Action, Role
from .roles import ROLE_PERMISSIONS


def normalize_role(role) -> Role | None:
    """Map a stored role name (including legacy aliases) to a Role, or None if unknown."""
    if isinstance(role, Role):
        return role
    if not role:
        return None
    name = str(role).strip().upper()
    if name in LEGACY_ROLE_ALIASES:
        return LEGACY_ROLE_ALIASES[name]
    try:
        return Role(name)
    except ValueError:
        return None


def has_permission(role, action: Action) -> bool:
    """Check if a role may perform an action. Unknown roles may do nothing."""
    normalized = normalize_role(role)
    if normalized is None:
        return False
    return Action(action) in ROLE_PERMISSIONS.get(normalized, frozenset())


def permissions_for(role) -> list[str]:
    normalized = normalize_role(role)
    if normalized is None:
        return []
    return sorted(a.value for a in ROLE_PERMISSIONS.get(normalized, frozenset()))


def get_action_definition(action):
    """Get full definition for an action."""
    for act, name, description in ACTION_DEFINITIONS:
        if act == action:
            return {"code": act.value, "name": name, "description": description}
    return None

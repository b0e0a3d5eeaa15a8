# Overview: Default action sets per role.

from .definitions import Action, Role


_SALES_ACTIONS = frozenset({
    Action.VIEW_PRODUCTS,
    Action.VIEW_INVENTORY,
    Action.MAKE_SALES,
    Action.MANAGE_LENDERS,
})

_MANAGER_ACTIONS = _SALES_ACTIONS | {
    Action.MANAGE_PRODUCTS,
    Action.MANAGE_STOCK,
    Action.MANAGE_RETURNS,
    Action.MANAGE_REPORTS,
}

ROLE_PERMISSIONS = {
    Role.ADMIN: frozenset(Action),
    Role.MANAGER: frozenset(_MANAGER_ACTIONS),
    Role.SALES: _SALES_ACTIONS,
}

"""
Role / action table tests.
"""

import pytest

from shopledger.permissions import Action, Role, get_action_definition, has_permission, normalize_role, permissions_for


class TestRoleTable:

    def test_admin_can_do_everything(self):
        assert all(has_permission(Role.ADMIN, action) for action in Action)

    @pytest.mark.parametrize("action", [
        Action.VIEW_PRODUCTS, Action.VIEW_INVENTORY, Action.MAKE_SALES, Action.MANAGE_LENDERS,
    ])
    def test_sales_allowed(self, action):
        assert has_permission("SALES", action)

    @pytest.mark.parametrize("action", [
        Action.MANAGE_PRODUCTS, Action.MANAGE_STOCK, Action.MANAGE_RETURNS,
        Action.MANAGE_REPORTS, Action.VIEW_ACTIVITY, Action.MANAGE_USERS,
    ])
    def test_sales_denied(self, action):
        assert not has_permission("SALES", action)

    def test_manager_has_no_admin_only_actions(self):
        assert has_permission("MANAGER", Action.MANAGE_REPORTS)
        assert has_permission("MANAGER", Action.MANAGE_STOCK)
        assert not has_permission("MANAGER", Action.VIEW_ACTIVITY)
        assert not has_permission("MANAGER", Action.MANAGE_USERS)


class TestNormalizeRole:

    def test_legacy_staff_is_sales(self):
        assert normalize_role("staff") is Role.SALES
        assert has_permission("STAFF", Action.MAKE_SALES)

    @pytest.mark.parametrize("role", [None, "", "OWNER"])
    def test_unknown_roles_get_nothing(self, role):
        assert normalize_role(role) is None
        assert not has_permission(role, Action.VIEW_PRODUCTS)
        assert permissions_for(role) == []

    def test_permissions_for_is_sorted(self):
        perms = permissions_for("SALES")
        assert perms == sorted(perms)
        assert "MAKE_SALES" in perms

    def test_action_definition(self):
        assert get_action_definition(Action.MANAGE_STOCK)["name"] == "Manage Stock"
        assert get_action_definition("NOPE") is None

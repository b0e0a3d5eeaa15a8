# Overview: Role and action definitions for access control.

from enum import Enum


class Role(str, Enum):
    """
    ADMIN   - Full access
    MANAGER - Products, stock updates, weekly reports, returns
    SALES   - POS, sales, lenders/customers only
    """
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SALES = "SALES"


# Accounts created before SALES existed carry this role name.
LEGACY_ROLE_ALIASES = {"STAFF": Role.SALES}


class Action(str, Enum):
    VIEW_PRODUCTS = "VIEW_PRODUCTS"
    MANAGE_PRODUCTS = "MANAGE_PRODUCTS"
    VIEW_INVENTORY = "VIEW_INVENTORY"
    MANAGE_STOCK = "MANAGE_STOCK"
    MAKE_SALES = "MAKE_SALES"
    MANAGE_LENDERS = "MANAGE_LENDERS"
    MANAGE_RETURNS = "MANAGE_RETURNS"
    MANAGE_REPORTS = "MANAGE_REPORTS"
    VIEW_ACTIVITY = "VIEW_ACTIVITY"
    MANAGE_USERS = "MANAGE_USERS"


# Each action is defined as: (action, name, description)
ACTION_DEFINITIONS = [
    (Action.VIEW_PRODUCTS, "View Products", "List and view products, categories and low-stock items"),
    (Action.MANAGE_PRODUCTS, "Manage Products", "Create, edit, delete and bulk-import products"),
    (Action.VIEW_INVENTORY, "View Inventory", "View valuation, stock movements, ledger checks and the dashboard"),
    (Action.MANAGE_STOCK, "Manage Stock", "Adjust stock and record purchase batches"),
    (Action.MAKE_SALES, "Make Sales", "Create sales and take payments"),
    (Action.MANAGE_LENDERS, "Manage Lenders", "Create lenders, record payments, change status"),
    (Action.MANAGE_RETURNS, "Manage Returns", "File, approve and complete returns"),
    (Action.MANAGE_REPORTS, "Manage Reports", "Create, view and close weekly stock reports"),
    (Action.VIEW_ACTIVITY, "View Activity", "View the activity audit log"),
    (Action.MANAGE_USERS, "Manage Users", "Create and list user accounts"),
]

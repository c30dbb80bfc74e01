"""
Permission Definitions

Permissions are organized by category and mapped to roles.

Categories:
    - USERS: User management
    - LEADS: Lead intake and the claim workflow
    - ORDERS: Order management
    - DESIGNS: Design management
    - PRODUCTION: Production management
    - CATALOG: Product/fabric catalog
    - COMMUNICATIONS: Messaging
    - REPORTS: Reports and analytics

Resolution rules:
    - admin always resolves to every permission
    - a non-empty custom permission list replaces the role defaults in full
    - otherwise the role defaults apply (unknown role -> no permissions)
"""

from enum import Enum
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Union

from .roles import Role, parse_role


class Permission(str, Enum):
    """
    All permissions in the system.

    Naming: action_category (e.g., edit_leads, view_orders)
    """

    # =========================================================================
    # USER MANAGEMENT
    # =========================================================================

    MANAGE_USERS = "manage_users"
    VIEW_USERS = "view_users"

    # =========================================================================
    # LEAD MANAGEMENT
    # =========================================================================

    CREATE_LEADS = "create_leads"
    EDIT_LEADS = "edit_leads"            # Claim, progress steps, contact logs
    DELETE_LEADS = "delete_leads"
    VIEW_LEADS = "view_leads"

    # =========================================================================
    # ORDER MANAGEMENT
    # =========================================================================

    CREATE_ORDERS = "create_orders"
    EDIT_ORDERS = "edit_orders"
    DELETE_ORDERS = "delete_orders"
    VIEW_ORDERS = "view_orders"
    APPROVE_ORDERS = "approve_orders"

    # =========================================================================
    # DESIGN MANAGEMENT
    # =========================================================================

    CREATE_DESIGNS = "create_designs"
    EDIT_DESIGNS = "edit_designs"
    DELETE_DESIGNS = "delete_designs"
    VIEW_DESIGNS = "view_designs"
    APPROVE_DESIGNS = "approve_designs"

    # =========================================================================
    # PRODUCTION MANAGEMENT
    # =========================================================================

    CREATE_PRODUCTION = "create_production"
    EDIT_PRODUCTION = "edit_production"
    DELETE_PRODUCTION = "delete_production"
    VIEW_PRODUCTION = "view_production"
    COMPLETE_PRODUCTION = "complete_production"

    # =========================================================================
    # CATALOG
    # =========================================================================

    VIEW_CATALOG = "view_catalog"
    EDIT_CATALOG = "edit_catalog"
    MANAGE_CATALOG = "manage_catalog"

    # =========================================================================
    # COMMUNICATIONS
    # =========================================================================

    SEND_MESSAGES = "send_messages"
    VIEW_MESSAGES = "view_messages"

    # =========================================================================
    # REPORTS & ANALYTICS
    # =========================================================================

    VIEW_REPORTS = "view_reports"
    VIEW_ANALYTICS = "view_analytics"


class Category(str, Enum):
    """Permission categories for UI grouping."""
    USERS = "User Management"
    LEADS = "Lead Management"
    ORDERS = "Order Management"
    DESIGNS = "Design Management"
    PRODUCTION = "Production Management"
    CATALOG = "Catalog Management"
    COMMUNICATIONS = "Communications"
    REPORTS = "Reports & Analytics"


@dataclass(frozen=True)
class PermissionInfo:
    """Complete information about a permission."""
    permission: Permission
    name: str
    description: str
    category: Category


# =============================================================================
# PERMISSION REGISTRY
# =============================================================================

PERMISSIONS: dict[Permission, PermissionInfo] = {
    # Users
    Permission.MANAGE_USERS: PermissionInfo(
        Permission.MANAGE_USERS, "Manage Users",
        "Create users, change roles and custom permissions", Category.USERS,
    ),
    Permission.VIEW_USERS: PermissionInfo(
        Permission.VIEW_USERS, "View Users", "View the user directory", Category.USERS,
    ),

    # Leads
    Permission.CREATE_LEADS: PermissionInfo(
        Permission.CREATE_LEADS, "Create Leads", "Add new leads to the queue", Category.LEADS,
    ),
    Permission.EDIT_LEADS: PermissionInfo(
        Permission.EDIT_LEADS, "Edit Leads",
        "Claim leads, log contacts and update lead progress", Category.LEADS,
    ),
    Permission.DELETE_LEADS: PermissionInfo(
        Permission.DELETE_LEADS, "Delete Leads", "Remove leads (administrative)", Category.LEADS,
    ),
    Permission.VIEW_LEADS: PermissionInfo(
        Permission.VIEW_LEADS, "View Leads", "View leads and their contact history", Category.LEADS,
    ),

    # Orders
    Permission.CREATE_ORDERS: PermissionInfo(
        Permission.CREATE_ORDERS, "Create Orders", "Create orders from leads", Category.ORDERS,
    ),
    Permission.EDIT_ORDERS: PermissionInfo(
        Permission.EDIT_ORDERS, "Edit Orders", "Edit order details", Category.ORDERS,
    ),
    Permission.DELETE_ORDERS: PermissionInfo(
        Permission.DELETE_ORDERS, "Delete Orders", "Remove orders", Category.ORDERS,
    ),
    Permission.VIEW_ORDERS: PermissionInfo(
        Permission.VIEW_ORDERS, "View Orders", "View orders", Category.ORDERS,
    ),
    Permission.APPROVE_ORDERS: PermissionInfo(
        Permission.APPROVE_ORDERS, "Approve Orders", "Approve orders for production", Category.ORDERS,
    ),

    # Designs
    Permission.CREATE_DESIGNS: PermissionInfo(
        Permission.CREATE_DESIGNS, "Create Designs", "Start design jobs", Category.DESIGNS,
    ),
    Permission.EDIT_DESIGNS: PermissionInfo(
        Permission.EDIT_DESIGNS, "Edit Designs", "Revise design jobs", Category.DESIGNS,
    ),
    Permission.DELETE_DESIGNS: PermissionInfo(
        Permission.DELETE_DESIGNS, "Delete Designs", "Remove design jobs", Category.DESIGNS,
    ),
    Permission.VIEW_DESIGNS: PermissionInfo(
        Permission.VIEW_DESIGNS, "View Designs", "View design jobs", Category.DESIGNS,
    ),
    Permission.APPROVE_DESIGNS: PermissionInfo(
        Permission.APPROVE_DESIGNS, "Approve Designs", "Sign off designs", Category.DESIGNS,
    ),

    # Production
    Permission.CREATE_PRODUCTION: PermissionInfo(
        Permission.CREATE_PRODUCTION, "Create Production", "Open production runs", Category.PRODUCTION,
    ),
    Permission.EDIT_PRODUCTION: PermissionInfo(
        Permission.EDIT_PRODUCTION, "Edit Production", "Update production status", Category.PRODUCTION,
    ),
    Permission.DELETE_PRODUCTION: PermissionInfo(
        Permission.DELETE_PRODUCTION, "Delete Production", "Remove production runs", Category.PRODUCTION,
    ),
    Permission.VIEW_PRODUCTION: PermissionInfo(
        Permission.VIEW_PRODUCTION, "View Production", "View production runs", Category.PRODUCTION,
    ),
    Permission.COMPLETE_PRODUCTION: PermissionInfo(
        Permission.COMPLETE_PRODUCTION, "Complete Production", "Mark production complete",
        Category.PRODUCTION,
    ),

    # Catalog
    Permission.VIEW_CATALOG: PermissionInfo(
        Permission.VIEW_CATALOG, "View Catalog", "Browse products and fabrics", Category.CATALOG,
    ),
    Permission.EDIT_CATALOG: PermissionInfo(
        Permission.EDIT_CATALOG, "Edit Catalog", "Edit catalog entries", Category.CATALOG,
    ),
    Permission.MANAGE_CATALOG: PermissionInfo(
        Permission.MANAGE_CATALOG, "Manage Catalog", "Add and retire catalog entries", Category.CATALOG,
    ),

    # Communications
    Permission.SEND_MESSAGES: PermissionInfo(
        Permission.SEND_MESSAGES, "Send Messages", "Send messages", Category.COMMUNICATIONS,
    ),
    Permission.VIEW_MESSAGES: PermissionInfo(
        Permission.VIEW_MESSAGES, "View Messages", "Read messages", Category.COMMUNICATIONS,
    ),

    # Reports
    Permission.VIEW_REPORTS: PermissionInfo(
        Permission.VIEW_REPORTS, "View Reports", "View sales and production reports", Category.REPORTS,
    ),
    Permission.VIEW_ANALYTICS: PermissionInfo(
        Permission.VIEW_ANALYTICS, "View Analytics", "View analytics dashboards", Category.REPORTS,
    ),
}


def get_permission_info(permission: Permission) -> PermissionInfo:
    """Get information about a permission."""
    return PERMISSIONS[permission]


ALL_PERMISSIONS: FrozenSet[Permission] = frozenset(Permission)


# =============================================================================
# ROLE → DEFAULT PERMISSIONS
# =============================================================================

ROLE_PERMISSIONS: dict[Role, FrozenSet[Permission]] = {
    # -------------------------------------------------------------------------
    # ADMIN: Everything
    # -------------------------------------------------------------------------
    Role.ADMIN: ALL_PERMISSIONS,

    # -------------------------------------------------------------------------
    # MANAGER: Sales floor plus reporting
    # -------------------------------------------------------------------------
    Role.MANAGER: frozenset({
        Permission.VIEW_USERS,
        # Leads
        Permission.CREATE_LEADS,
        Permission.EDIT_LEADS,
        Permission.VIEW_LEADS,
        # Orders
        Permission.CREATE_ORDERS,
        Permission.EDIT_ORDERS,
        Permission.VIEW_ORDERS,
        # Catalog
        Permission.VIEW_CATALOG,
        Permission.MANAGE_CATALOG,
        # Communications
        Permission.SEND_MESSAGES,
        Permission.VIEW_MESSAGES,
        # Reports
        Permission.VIEW_REPORTS,
        Permission.VIEW_ANALYTICS,
    }),

    # -------------------------------------------------------------------------
    # AGENT: Leads and orders
    # -------------------------------------------------------------------------
    Role.AGENT: frozenset({
        Permission.CREATE_LEADS,
        Permission.EDIT_LEADS,
        Permission.VIEW_LEADS,
        Permission.CREATE_ORDERS,
        Permission.EDIT_ORDERS,
        Permission.VIEW_ORDERS,
        Permission.VIEW_CATALOG,
        Permission.SEND_MESSAGES,
        Permission.VIEW_MESSAGES,
    }),

    # -------------------------------------------------------------------------
    # DESIGNER: Designs only
    # -------------------------------------------------------------------------
    Role.DESIGNER: frozenset({
        Permission.CREATE_DESIGNS,
        Permission.EDIT_DESIGNS,
        Permission.VIEW_DESIGNS,
        Permission.VIEW_CATALOG,
        Permission.SEND_MESSAGES,
        Permission.VIEW_MESSAGES,
    }),

    # -------------------------------------------------------------------------
    # MANUFACTURER: Production
    # -------------------------------------------------------------------------
    Role.MANUFACTURER: frozenset({
        Permission.VIEW_ORDERS,
        Permission.EDIT_PRODUCTION,
        Permission.VIEW_PRODUCTION,
        Permission.COMPLETE_PRODUCTION,
        Permission.VIEW_DESIGNS,
        Permission.VIEW_CATALOG,
        Permission.SEND_MESSAGES,
        Permission.VIEW_MESSAGES,
    }),

    # -------------------------------------------------------------------------
    # VIEWER: Read only
    # -------------------------------------------------------------------------
    Role.VIEWER: frozenset({
        Permission.VIEW_LEADS,
        Permission.VIEW_ORDERS,
        Permission.VIEW_MESSAGES,
        Permission.VIEW_CATALOG,
    }),
}


def get_role_permissions(role: Union[Role, str, None]) -> FrozenSet[Permission]:
    """Get the default permissions for a role (empty for unknown roles)."""
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(parsed, frozenset())


def parse_permissions(values: Optional[Iterable[Union[Permission, str]]]) -> FrozenSet[Permission]:
    """
    Normalize a stored custom permission list.

    Unknown strings are dropped rather than raising.
    """
    if not values:
        return frozenset()
    parsed = set()
    for value in values:
        if isinstance(value, Permission):
            parsed.add(value)
            continue
        try:
            parsed.add(Permission(str(value)))
        except ValueError:
            continue
    return frozenset(parsed)


def resolve_permissions(
    role: Union[Role, str, None],
    custom_permissions: Optional[Iterable[Union[Permission, str]]] = None,
) -> FrozenSet[Permission]:
    """
    Resolve the effective permission set of a principal.

    Admin always gets every permission, whatever the override says.
    A non-empty custom list replaces the role defaults (no merge).
    """
    parsed_role = parse_role(role)
    if parsed_role == Role.ADMIN:
        return ALL_PERMISSIONS

    custom = list(custom_permissions) if custom_permissions else []
    if custom:
        return parse_permissions(custom)

    return get_role_permissions(parsed_role)


def has_permission(
    role: Union[Role, str, None],
    custom_permissions: Optional[Iterable[Union[Permission, str]]],
    required: Union[Permission, str],
) -> bool:
    """Check if a principal holds a specific permission."""
    if parse_role(role) == Role.ADMIN:
        return True
    try:
        required = Permission(required)
    except ValueError:
        return False
    return required in resolve_permissions(role, custom_permissions)


def get_permission_display_name(permission: Union[Permission, str]) -> str:
    """Title-case a permission code: edit_leads -> Edit Leads."""
    raw = permission.value if isinstance(permission, Permission) else str(permission)
    return " ".join(word.capitalize() for word in raw.split("_"))


def get_permission_groups() -> List[dict]:
    """Group permissions by category for UI display, in declaration order."""
    groups: dict[Category, List[Permission]] = {category: [] for category in Category}
    for permission, info in PERMISSIONS.items():
        groups[info.category].append(permission)
    return [
        {"category": category.value, "permissions": permissions}
        for category, permissions in groups.items()
        if permissions
    ]

"""
Role-Based Access Control (RBAC)

6 roles, one permission universe:

    - admin: always every permission
    - manager, agent, designer, manufacturer, viewer: role defaults,
      replaced in full by a non-empty per-user custom permission list

Usage:
    from rbac import Permission, require_permission

    @router.post("/leads")
    async def create_lead(ctx: AuthContext = Depends(require_permission(Permission.CREATE_LEADS))):
        ...
"""

from .roles import Role, RoleInfo, ROLES, get_role_info, get_role_display_name, parse_role
from .permissions import (
    Permission,
    PermissionInfo,
    PERMISSIONS,
    ROLE_PERMISSIONS,
    ALL_PERMISSIONS,
    get_permission_info,
    get_role_permissions,
    get_permission_display_name,
    get_permission_groups,
    parse_permissions,
    resolve_permissions,
    has_permission,
)
from .context import AuthContext
from .dependencies import (
    get_auth_context,
    require_auth,
    require_permission,
)

__all__ = [
    # Roles
    "Role",
    "RoleInfo",
    "ROLES",
    "get_role_info",
    "get_role_display_name",
    "parse_role",

    # Permissions
    "Permission",
    "PermissionInfo",
    "PERMISSIONS",
    "ROLE_PERMISSIONS",
    "ALL_PERMISSIONS",
    "get_permission_info",
    "get_role_permissions",
    "get_permission_display_name",
    "get_permission_groups",
    "parse_permissions",
    "resolve_permissions",
    "has_permission",

    # Context
    "AuthContext",

    # Dependencies
    "get_auth_context",
    "require_auth",
    "require_permission",
]

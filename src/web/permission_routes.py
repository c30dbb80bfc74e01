"""
Permission and User Routes

- /api/permissions: the caller's effective permissions and the catalogue
- /api/users: principals and their permission overrides (admin screens)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError

from database.lead_store import LeadStore
from rbac import (
    AuthContext,
    Permission,
    ROLES,
    get_permission_groups,
    parse_role,
    require_auth,
    require_permission,
)

from .common import format_success_response
from .dependencies import get_store
from .schemas import UserCreateRequest, UserPermissionsRequest

logger = logging.getLogger(__name__)

permission_router = APIRouter(prefix="/api/permissions", tags=["Permissions"])
user_router = APIRouter(prefix="/api/users", tags=["Users"])


def _validate_permissions(values):
    if not values:
        return None
    unknown = [value for value in values if value not in Permission._value2member_map_]
    if unknown:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown permissions: {', '.join(unknown)}",
        )
    return list(values)


# =============================================================================
# PERMISSIONS
# =============================================================================

@permission_router.get("/me", operation_id="get_my_permissions")
async def get_my_permissions(ctx: AuthContext = Depends(require_auth)):
    """Effective role and permissions of the caller."""
    return format_success_response({"user": ctx.to_dict()})


@permission_router.get("/groups", operation_id="get_permission_groups")
async def list_permission_groups(ctx: AuthContext = Depends(require_auth)):
    """All permissions grouped by category, plus the role catalogue."""
    return format_success_response({
        "groups": get_permission_groups(),
        "roles": [
            {
                "role": info.role.value,
                "name": info.name,
                "description": info.description,
            }
            for info in ROLES.values()
        ],
    })


# =============================================================================
# USERS
# =============================================================================

@user_router.get("", operation_id="list_users")
def list_users(
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_USERS)),
    store: LeadStore = Depends(get_store),
):
    users = store.list_users()
    return format_success_response({
        "users": [user.to_dict() for user in users],
        "count": len(users),
    })


@user_router.post("", status_code=status.HTTP_201_CREATED, operation_id="create_user")
def create_user(
    body: UserCreateRequest,
    ctx: AuthContext = Depends(require_permission(Permission.MANAGE_USERS)),
    store: LeadStore = Depends(get_store),
):
    role = parse_role(body.role)
    if role is None:
        raise HTTPException(status_code=422, detail=f"Unknown role: {body.role}")
    permissions = _validate_permissions(body.permissions)

    try:
        user = store.create_user(
            username=body.username,
            role=role,
            full_name=body.full_name,
            email=body.email,
            custom_permissions=permissions,
        )
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"Username already exists: {body.username}")

    logger.info(f"User {user.id} created by user {ctx.user_id}")
    return format_success_response({"user": user.to_dict()})


@user_router.get("/{user_id}", operation_id="get_user")
def get_user(
    user_id: int,
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_USERS)),
    store: LeadStore = Depends(get_store),
):
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return format_success_response({"user": user.to_dict()})


@user_router.put("/{user_id}/permissions", operation_id="set_user_permissions")
def set_user_permissions(
    user_id: int,
    body: UserPermissionsRequest,
    ctx: AuthContext = Depends(require_permission(Permission.MANAGE_USERS)),
    store: LeadStore = Depends(get_store),
):
    """Replace the user's override. Takes effect on their next request."""
    permissions = _validate_permissions(body.permissions)
    user = store.set_user_permissions(user_id, permissions)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    logger.info(f"Permissions of user {user_id} changed by user {ctx.user_id}")
    return format_success_response({"user": user.to_dict()})

"""
FastAPI Dependencies

Dependency injection helpers for route protection.

Usage:
    from rbac import require_auth, require_permission, Permission

    # Require authentication
    @router.get("/profile")
    async def get_profile(ctx: AuthContext = Depends(require_auth)):
        return {"user": ctx.name}

    # Require specific permission
    @router.post("/leads")
    async def create_lead(ctx: AuthContext = Depends(require_permission(Permission.CREATE_LEADS))):
        ...
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from starlette.concurrency import run_in_threadpool
import jwt

from config.logging_config import user_id_var
from .permissions import Permission, get_permission_display_name
from .context import AuthContext

logger = logging.getLogger(__name__)


# =============================================================================
# HTTP BEARER SECURITY
# =============================================================================

security = HTTPBearer(auto_error=False)


# =============================================================================
# CORE DEPENDENCIES
# =============================================================================

async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthContext:
    """
    Get the authentication context for the current request.

    Extracts the user id from the JWT and loads the user's current role and
    permission override from the store. Does NOT enforce authentication -
    use require_auth for that.

    Returns:
        AuthContext: The authentication context (may be anonymous).
    """
    if hasattr(request.state, "auth_context"):
        return request.state.auth_context

    if credentials is None:
        return AuthContext.anonymous()

    try:
        from .jwt import decode_token  # Import here to avoid circular imports

        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            return AuthContext.anonymous()

        user_id = int(payload["sub"])
        store = request.app.state.lead_store
        # Blocking store read
        principal = await run_in_threadpool(store.get_user, user_id)
        if principal is None:
            logger.info(f"Token for unknown user {user_id}")
            return AuthContext.anonymous()

        ctx = AuthContext.for_principal(
            principal,
            token_id=payload.get("jti"),
            token_exp=payload.get("exp"),
        )

        request.state.auth_context = ctx
        user_id_var.set(str(ctx.user_id))
        return ctx

    except jwt.ExpiredSignatureError:
        return AuthContext.anonymous()
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid JWT token: {e}")
        return AuthContext.anonymous()
    except (ValueError, KeyError, TypeError) as e:
        logger.debug(f"Malformed token payload: {e}")
        return AuthContext.anonymous()


async def require_auth(
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """
    Require authentication.

    Raises 401 if not authenticated.
    """
    if not ctx.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx


def require_permission(permission: Permission) -> Callable:
    """
    Require a specific permission.

    Raises 401 if not authenticated, 403 if the permission is missing.

    Usage:
        @router.get("/leads")
        async def list_leads(ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS))):
            ...
    """

    async def _dependency(ctx: AuthContext = Depends(require_auth)) -> AuthContext:
        if not ctx.has_permission(permission):
            logger.info(
                f"Permission denied: user {ctx.user_id} lacks {permission.value}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {get_permission_display_name(permission)}",
            )
        return ctx

    return _dependency

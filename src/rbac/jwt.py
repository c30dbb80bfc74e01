"""
JWT Token Handling

Simple JWT encoding/decoding for bearer authentication.
The token only identifies the user; role and permissions are always
resolved from the users table so permission changes apply immediately.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import jwt

from config.settings import AuthSettings, get_settings


# Lazy initialization to allow startup validation
_jwt_secret_cache: Optional[str] = None


def _get_jwt_secret(auth: AuthSettings) -> str:
    """
    Get JWT secret from settings.

    SECURITY: In production, JWT_SECRET must be set.
    In development, a per-process random secret is generated.
    """
    secret = auth.secret

    if not secret:
        if get_settings().is_production:
            raise RuntimeError(
                "CRITICAL SECURITY ERROR: JWT_SECRET environment variable is required in production. "
                "Generate with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        import warnings
        import secrets as _secrets
        warnings.warn(
            "JWT_SECRET not set - using generated development secret. "
            "Set JWT_SECRET environment variable for production.",
            UserWarning
        )
        return f"DEV-ONLY-{_secrets.token_hex(32)}"

    if len(secret) < 32:
        raise ValueError("JWT_SECRET must be at least 32 characters for security")

    return secret


def get_jwt_secret() -> str:
    """Get the JWT secret (cached after first call)."""
    global _jwt_secret_cache
    if _jwt_secret_cache is None:
        _jwt_secret_cache = _get_jwt_secret(AuthSettings())
    return _jwt_secret_cache


def reset_jwt_secret_cache() -> None:
    """Forget the cached secret (settings reload, tests)."""
    global _jwt_secret_cache
    _jwt_secret_cache = None


# =============================================================================
# TOKEN CREATION
# =============================================================================

def create_access_token(
    user_id: int,
    username: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: users.id of the principal
        username: Login name (informational)
        expires_delta: Custom expiration time

    Returns:
        JWT token string
    """
    auth = AuthSettings()
    if expires_delta is None:
        expires_delta = timedelta(hours=auth.access_token_expire_hours)

    issued_at = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "username": username,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "jti": uuid.uuid4().hex,
        "type": "access",
    }

    return jwt.encode(payload, get_jwt_secret(), algorithm=auth.algorithm)


# =============================================================================
# TOKEN DECODING
# =============================================================================

def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Raises:
        jwt.InvalidTokenError: If token is invalid or expired
    """
    return jwt.decode(token, get_jwt_secret(), algorithms=[AuthSettings().algorithm])


def decode_token_safe(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode a JWT token without raising exceptions.

    Returns None if token is invalid.
    """
    try:
        return decode_token(token)
    except jwt.InvalidTokenError:
        return None


def validate_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Validate an access token.

    Returns payload if valid, None if invalid.
    """
    payload = decode_token_safe(token)
    if payload and payload.get("type") == "access":
        return payload
    return None

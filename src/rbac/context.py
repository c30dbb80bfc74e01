"""
Authentication Context

AuthContext is the primary object passed through routes containing
all information about the authenticated user.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set, TYPE_CHECKING
from datetime import datetime

from .roles import Role, get_role_display_name
from .permissions import Permission, resolve_permissions

if TYPE_CHECKING:
    from lead_workflow.models import Principal


@dataclass
class AuthContext:
    """
    Authentication context for the current request.

    This is the single source of truth for who is making the request
    and what they can do.

    Usage:
        @router.get("/leads")
        async def list_leads(ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS))):
            ...
    """

    # =========================================================================
    # Identity
    # =========================================================================

    user_id: int
    """Unique identifier for the user (users.id)."""

    username: str
    """Login name."""

    name: str
    """User's display name."""

    role: Optional[Role]
    """User's role; None when the stored role is not recognized."""

    custom_permissions: List[Permission] = field(default_factory=list)
    """Per-user override list. Non-empty replaces the role defaults."""

    # =========================================================================
    # Computed Properties (set during context creation)
    # =========================================================================

    permissions: Set[Permission] = field(default_factory=set)
    """Effective permissions (role defaults or custom override)."""

    is_authenticated: bool = False
    """Whether the user is authenticated."""

    # =========================================================================
    # Session Info
    # =========================================================================

    token_id: Optional[str] = None
    """JWT token ID (jti) for session tracking."""

    token_exp: Optional[datetime] = None
    """Token expiration time."""

    def __post_init__(self):
        """Populate computed fields after initialization."""
        if self.role is not None or self.custom_permissions:
            self.permissions = set(resolve_permissions(self.role, self.custom_permissions))
            self.is_authenticated = True

    # =========================================================================
    # Permission Checks
    # =========================================================================

    def has_permission(self, permission: Permission) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions

    def has_any_permission(self, permissions: Set[Permission]) -> bool:
        """Check if user has any of the specified permissions."""
        return bool(self.permissions & permissions)

    def has_all_permissions(self, permissions: Set[Permission]) -> bool:
        """Check if user has all of the specified permissions."""
        return permissions <= self.permissions

    @property
    def is_admin(self) -> bool:
        """Is this an administrator?"""
        return self.role == Role.ADMIN

    # =========================================================================
    # Factory Methods
    # =========================================================================

    @classmethod
    def anonymous(cls) -> "AuthContext":
        """Create an anonymous (unauthenticated) context."""
        return cls(
            user_id=0,
            username="",
            name="Anonymous",
            role=None,
            is_authenticated=False,
        )

    @classmethod
    def for_principal(
        cls,
        principal: "Principal",
        token_id: Optional[str] = None,
        token_exp: Optional[datetime] = None,
    ) -> "AuthContext":
        """Create context for a stored user."""
        ctx = cls(
            user_id=principal.id,
            username=principal.username,
            name=principal.full_name or principal.username,
            role=principal.role,
            custom_permissions=list(principal.custom_permissions),
            token_id=token_id,
            token_exp=token_exp,
        )
        # A user with an unrecognized role and no override still authenticated
        ctx.is_authenticated = True
        return ctx

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "name": self.name,
            "role": self.role.value if self.role else None,
            "role_display": get_role_display_name(self.role) if self.role else None,
            "permissions": sorted(p.value for p in self.permissions),
            "has_custom_permissions": bool(self.custom_permissions),
            "is_authenticated": self.is_authenticated,
        }

"""
Role Definitions

6 roles, one per team in the business:

    ├── admin         - Full access, always resolves to every permission
    ├── manager       - Runs the sales floor, sees reports
    ├── agent         - Sales agent, claims and works leads
    ├── designer      - Design team
    ├── manufacturer  - Production partner
    └── viewer        - Read-only access
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional, Union


class Role(str, Enum):
    """
    All roles in the system.

    Naming convention: UPPER_SNAKE_CASE for enum, lower_snake_case for value.
    """

    ADMIN = "admin"
    """
    Full access. Custom permission overrides never narrow an admin.
    Who: Owners, operations leads
    """

    MANAGER = "manager"
    """
    Sales management. Leads, orders, catalog, reporting.
    Who: Sales managers
    """

    AGENT = "agent"
    """
    Sales agent. Creates, claims and works leads through to design handoff.
    Who: Salespeople
    """

    DESIGNER = "designer"
    """
    Design team. Works designs submitted from leads.
    Who: Graphic designers
    """

    MANUFACTURER = "manufacturer"
    """
    Production partner. Views orders, updates production.
    Who: Factory contacts
    """

    VIEWER = "viewer"
    """
    Read-only access to leads, orders, messages and catalog.
    Who: Stakeholders, auditors
    """


@dataclass(frozen=True)
class RoleInfo:
    """Complete information about a role."""
    role: Role
    name: str
    description: str
    is_admin: bool      # Always resolves to the full permission set?
    is_sales: bool      # Works leads?


# =============================================================================
# ROLE REGISTRY
# =============================================================================

ROLES: dict[Role, RoleInfo] = {
    Role.ADMIN: RoleInfo(
        role=Role.ADMIN,
        name="Administrator",
        description="Full access to every area of the application",
        is_admin=True,
        is_sales=True,
    ),
    Role.MANAGER: RoleInfo(
        role=Role.MANAGER,
        name="Manager",
        description="Sales management - leads, orders, catalog and reports",
        is_admin=False,
        is_sales=True,
    ),
    Role.AGENT: RoleInfo(
        role=Role.AGENT,
        name="Sales Agent",
        description="Claims and works leads through to design handoff",
        is_admin=False,
        is_sales=True,
    ),
    Role.DESIGNER: RoleInfo(
        role=Role.DESIGNER,
        name="Designer",
        description="Creates and edits designs",
        is_admin=False,
        is_sales=False,
    ),
    Role.MANUFACTURER: RoleInfo(
        role=Role.MANUFACTURER,
        name="Manufacturer",
        description="Views orders and updates production",
        is_admin=False,
        is_sales=False,
    ),
    Role.VIEWER: RoleInfo(
        role=Role.VIEWER,
        name="Viewer",
        description="Read-only access",
        is_admin=False,
        is_sales=False,
    ),
}


def get_role_info(role: Role) -> RoleInfo:
    """Get information about a role."""
    return ROLES[role]


def parse_role(value: Union[Role, str, None]) -> Optional[Role]:
    """
    Normalize a stored role value.

    Returns None for anything outside the enumeration (legacy "user" rows,
    typos) instead of raising.
    """
    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return None


def get_role_display_name(role: Union[Role, str]) -> str:
    """Human-readable role name; unknown roles are returned unchanged."""
    parsed = parse_role(role)
    if parsed is None:
        return str(role)
    return ROLES[parsed].name

"""
Lead workflow records.

Plain dataclasses returned by the store and the engine. They are snapshots:
every mutation returns a fresh copy that callers should use in place of any
copy they already hold.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional, Tuple

from rbac.permissions import Permission, resolve_permissions
from rbac.roles import Role

from .states import (
    ContactMethod,
    LeadStage,
    PROGRESS_ORDER,
    ProgressStep,
    derive_stage,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Principal:
    """A user of the system, with the role and override that drive permissions."""
    id: int
    username: str
    role: Optional[Role]
    full_name: Optional[str] = None
    email: Optional[str] = None
    custom_permissions: Tuple[Permission, ...] = ()
    created_at: Optional[datetime] = None

    @property
    def permissions(self) -> FrozenSet[Permission]:
        return resolve_permissions(self.role, list(self.custom_permissions))

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "custom_permissions": [p.value for p in self.custom_permissions],
            "permissions": sorted(p.value for p in self.permissions),
            "created_at": _iso(self.created_at),
        }


@dataclass
class NewLead:
    """Intake data for a lead. The lead always starts unclaimed."""
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[str] = None
    status: str = "new"
    notes: Optional[str] = None
    value: Optional[float] = None


@dataclass
class Lead:
    """A prospective customer moving through the claim workflow."""
    id: int
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[str] = None
    status: str = "new"
    notes: Optional[str] = None
    value: Optional[float] = None

    claimed: bool = False
    claimed_by_id: Optional[int] = None
    claimed_at: Optional[datetime] = None

    contact_complete: bool = False
    items_confirmed: bool = False
    submitted_to_design: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    version: int = 1

    @property
    def progress(self) -> Dict[ProgressStep, bool]:
        """Current value of each progress flag, in workflow order."""
        return {step: bool(getattr(self, step.value)) for step in PROGRESS_ORDER}

    @property
    def stage(self) -> LeadStage:
        return derive_stage(self.claimed, self.progress)

    def to_dict(self) -> Dict[str, Any]:
        stage = self.stage
        return {
            "id": self.id,
            "name": self.name,
            "company": self.company,
            "email": self.email,
            "phone": self.phone,
            "source": self.source,
            "status": self.status,
            "notes": self.notes,
            "value": self.value,
            "claimed": self.claimed,
            "claimed_by_id": self.claimed_by_id,
            "claimed_at": _iso(self.claimed_at),
            "contact_complete": self.contact_complete,
            "items_confirmed": self.items_confirmed,
            "submitted_to_design": self.submitted_to_design,
            "stage": stage.name.lower(),
            "stage_display": stage.display_name,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "verified_at": _iso(self.verified_at),
            "version": self.version,
        }


@dataclass
class ContactLog:
    """One recorded interaction with a lead. Never edited after insert."""
    id: int
    lead_id: int
    user_id: int
    contact_method: ContactMethod
    notes: Optional[str]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "user_id": self.user_id,
            "contact_method": self.contact_method.value,
            "contact_method_display": self.contact_method.display_name,
            "notes": self.notes,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class Activity:
    """Audit row written alongside each successful lifecycle mutation."""
    id: int
    lead_id: int
    user_id: int
    action: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "user_id": self.user_id,
            "action": self.action,
            "details": self.details,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class ProgressUpdate:
    """Partial update of the progress flags. None means leave unchanged."""
    contact_complete: Optional[bool] = None
    items_confirmed: Optional[bool] = None
    submitted_to_design: Optional[bool] = None

    def changes(self) -> Dict[ProgressStep, bool]:
        """Provided fields only, in workflow order."""
        result = {}
        for step in PROGRESS_ORDER:
            value = getattr(self, step.value)
            if value is not None:
                result[step] = bool(value)
        return result

    @property
    def is_empty(self) -> bool:
        return not self.changes()


@dataclass
class ClaimResult:
    """Outcome of a successful claim, with the step the UI should go to next."""
    lead: Lead
    next_step: str

    def to_dict(self) -> Dict[str, Any]:
        return {"lead": self.lead.to_dict(), "next_step": self.next_step}


@dataclass
class ContactLogResult:
    """Outcome of logging a contact."""
    contact_log: ContactLog
    lead: Lead
    contact_completed: bool = False
    """True when this log is the one that flipped contact_complete."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contact_log": self.contact_log.to_dict(),
            "lead": self.lead.to_dict(),
            "contact_completed": self.contact_completed,
        }

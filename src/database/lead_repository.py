"""Lead Repository.

Session-bound data access for users, leads, contact logs and the activity
trail. All writes to a lead are column-level; the workflow columns are only
changed through conditional UPDATE statements so concurrent writers can never
overwrite each other's fields.

A repository does not commit. Use it through `LeadStore.transaction()`.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from lead_workflow.models import (
    Activity,
    ContactLog,
    Lead,
    NewLead,
    Principal,
    utcnow,
)
from lead_workflow.states import ContactMethod, PROGRESS_ORDER, ProgressStep
from rbac.permissions import Permission
from rbac.roles import Role, parse_role

from .models import ActivityRecord, ContactLogRecord, LeadRecord, UserRecord

logger = logging.getLogger(__name__)

_PROGRESS_COLUMNS = frozenset(step.value for step in PROGRESS_ORDER)


# =============================================================================
# ROW MAPPING
# =============================================================================

def _to_principal(row: UserRecord) -> Principal:
    # Stored order is kept; values that are not permissions are dropped
    ordered = []
    for value in row.permissions or []:
        try:
            permission = Permission(value)
        except ValueError:
            continue
        if permission not in ordered:
            ordered.append(permission)
    return Principal(
        id=row.id,
        username=row.username,
        role=parse_role(row.role),
        full_name=row.full_name,
        email=row.email,
        custom_permissions=tuple(ordered),
        created_at=row.created_at,
    )


def _to_lead(row: LeadRecord) -> Lead:
    return Lead(
        id=row.id,
        name=row.name,
        company=row.company,
        email=row.email,
        phone=row.phone,
        source=row.source,
        status=row.status,
        notes=row.notes,
        value=row.value,
        claimed=bool(row.claimed),
        claimed_by_id=row.claimed_by_id,
        claimed_at=row.claimed_at,
        contact_complete=bool(row.contact_complete),
        items_confirmed=bool(row.items_confirmed),
        submitted_to_design=bool(row.submitted_to_design),
        created_at=row.created_at,
        updated_at=row.updated_at,
        verified_at=row.verified_at,
        version=row.version,
    )


def _to_contact_log(row: ContactLogRecord) -> ContactLog:
    return ContactLog(
        id=row.id,
        lead_id=row.lead_id,
        user_id=row.user_id,
        contact_method=ContactMethod(row.contact_method),
        notes=row.notes,
        timestamp=row.timestamp,
    )


def _to_activity(row: ActivityRecord) -> Activity:
    return Activity(
        id=row.id,
        lead_id=row.lead_id,
        user_id=row.user_id,
        action=row.action,
        details=dict(row.details or {}),
        timestamp=row.timestamp,
    )


class LeadRepository:
    """
    Data access for the lead workflow tables within one session.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with a session.

        Args:
            session: SQLAlchemy session owned by the caller.
        """
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # =========================================================================
    # USERS
    # =========================================================================

    def insert_user(
        self,
        username: str,
        role: Role,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        custom_permissions: Optional[List[str]] = None,
    ) -> Principal:
        row = UserRecord(
            username=username,
            role=role.value,
            full_name=full_name,
            email=email,
            permissions=list(custom_permissions) if custom_permissions else None,
            created_at=utcnow(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_principal(row)

    def get_user(self, user_id: int) -> Optional[Principal]:
        row = self._session.get(UserRecord, user_id)
        return _to_principal(row) if row is not None else None

    def list_users(self) -> List[Principal]:
        rows = self._session.scalars(select(UserRecord).order_by(UserRecord.id)).all()
        return [_to_principal(row) for row in rows]

    def set_user_permissions(
        self,
        user_id: int,
        custom_permissions: Optional[List[str]],
    ) -> Optional[Principal]:
        """Replace a user's override list. None or [] restores the role defaults."""
        row = self._session.get(UserRecord, user_id)
        if row is None:
            return None
        row.permissions = list(custom_permissions) if custom_permissions else None
        self._session.flush()
        return _to_principal(row)

    # =========================================================================
    # LEADS
    # =========================================================================

    def insert_lead(self, data: NewLead) -> Lead:
        now = utcnow()
        row = LeadRecord(
            name=data.name,
            company=data.company,
            email=data.email,
            phone=data.phone,
            source=data.source,
            status=data.status or "new",
            notes=data.notes,
            value=data.value,
            claimed=False,
            claimed_by_id=None,
            contact_complete=False,
            items_confirmed=False,
            submitted_to_design=False,
            created_at=now,
            updated_at=now,
            version=1,
        )
        self._session.add(row)
        self._session.flush()
        return _to_lead(row)

    def get_lead(self, lead_id: int) -> Optional[Lead]:
        """Fresh read of a lead, bypassing anything cached in the session."""
        row = self._session.execute(
            select(LeadRecord)
            .where(LeadRecord.id == lead_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _to_lead(row) if row is not None else None

    def list_leads(self) -> List[Lead]:
        rows = self._session.scalars(
            select(LeadRecord).order_by(LeadRecord.created_at.desc(), LeadRecord.id.desc())
        ).all()
        return [_to_lead(row) for row in rows]

    def list_unclaimed_leads(self) -> List[Lead]:
        """Unclaimed queue, newest first."""
        rows = self._session.scalars(
            select(LeadRecord)
            .where(LeadRecord.claimed.is_(False))
            .order_by(LeadRecord.created_at.desc(), LeadRecord.id.desc())
        ).all()
        return [_to_lead(row) for row in rows]

    def list_claimed_by(self, user_id: int) -> List[Lead]:
        """Leads owned by `user_id`, newest first."""
        rows = self._session.scalars(
            select(LeadRecord)
            .where(LeadRecord.claimed_by_id == user_id)
            .order_by(LeadRecord.created_at.desc(), LeadRecord.id.desc())
        ).all()
        return [_to_lead(row) for row in rows]

    def claim_lead(self, lead_id: int, user_id: int, claimed_at: datetime) -> bool:
        """
        Compare-and-set claim.

        Returns:
            True if this call claimed the lead, False if it was missing or
            already claimed.
        """
        result = self._session.execute(
            update(LeadRecord)
            .where(LeadRecord.id == lead_id, LeadRecord.claimed.is_(False))
            .values(
                claimed=True,
                claimed_by_id=user_id,
                claimed_at=claimed_at,
                updated_at=claimed_at,
                version=LeadRecord.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def update_progress(
        self,
        lead_id: int,
        changes: Mapping[ProgressStep, bool],
        expected_version: int,
    ) -> bool:
        """
        Write only the given progress columns if the lead is still at
        `expected_version`.

        Returns:
            False when another writer got there first (or the lead vanished).
        """
        values: Dict[str, Any] = {}
        for step, value in changes.items():
            if step.value not in _PROGRESS_COLUMNS:
                raise ValueError(f"Not a progress column: {step}")
            values[step.value] = bool(value)
        if not values:
            return True

        now = utcnow()
        values["updated_at"] = now
        values["version"] = LeadRecord.version + 1

        result = self._session.execute(
            update(LeadRecord)
            .where(
                LeadRecord.id == lead_id,
                LeadRecord.claimed.is_(True),
                LeadRecord.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_contact_complete(self, lead_id: int) -> bool:
        """
        Set contact_complete if it is still false.

        Returns:
            True if this call flipped the flag.
        """
        now = utcnow()
        result = self._session.execute(
            update(LeadRecord)
            .where(LeadRecord.id == lead_id, LeadRecord.contact_complete.is_(False))
            .values(
                contact_complete=True,
                updated_at=now,
                version=LeadRecord.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # =========================================================================
    # CONTACT LOGS
    # =========================================================================

    def insert_contact_log(
        self,
        lead_id: int,
        user_id: int,
        contact_method: ContactMethod,
        notes: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> ContactLog:
        row = ContactLogRecord(
            lead_id=lead_id,
            user_id=user_id,
            contact_method=contact_method.value,
            notes=notes,
            timestamp=timestamp or utcnow(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_contact_log(row)

    def list_contact_logs(self, lead_id: int) -> List[ContactLog]:
        """Contact logs for a lead, oldest first."""
        rows = self._session.scalars(
            select(ContactLogRecord)
            .where(ContactLogRecord.lead_id == lead_id)
            .order_by(ContactLogRecord.timestamp.asc(), ContactLogRecord.id.asc())
        ).all()
        return [_to_contact_log(row) for row in rows]

    # =========================================================================
    # ACTIVITY
    # =========================================================================

    def record_activity(
        self,
        lead_id: int,
        user_id: int,
        action: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Activity:
        row = ActivityRecord(
            lead_id=lead_id,
            user_id=user_id,
            action=action,
            details=details or {},
            timestamp=utcnow(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_activity(row)

    def list_activities(self, lead_id: int) -> List[Activity]:
        rows = self._session.scalars(
            select(ActivityRecord)
            .where(ActivityRecord.lead_id == lead_id)
            .order_by(ActivityRecord.timestamp.asc(), ActivityRecord.id.asc())
        ).all()
        return [_to_activity(row) for row in rows]

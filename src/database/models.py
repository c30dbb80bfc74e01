"""
SQLAlchemy ORM Models for the Lead Workflow Database.

Tables:
- users: principals with a role and an optional permission override
- leads: prospective customers with claim metadata and progress flags
- contact_logs: append-only record of contacts with a lead
- lead_activities: audit trail of lifecycle mutations

Invariants enforced in the schema:
- claimed is true exactly when claimed_by_id is set
- version starts at 1 and only grows
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime,
    Text, ForeignKey, Index, CheckConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator


# Cross-database compatible JSON type
# Uses JSONB on PostgreSQL, JSON on SQLite/others
class JSONB(TypeDecorator):
    """A portable JSONB type that works with both PostgreSQL and SQLite."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_JSONB())
        else:
            return dialect.type_descriptor(JSON())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


Base = declarative_base()


class UserRecord(Base):
    """
    A principal of the system.

    `permissions` holds the custom override list. NULL or an empty list means
    the role defaults apply.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(30), nullable=False, default="viewer")
    permissions = Column(JSONB, nullable=True, comment="Custom permission override")
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    claimed_leads = relationship("LeadRecord", back_populates="claimed_by")

    def __repr__(self):
        return f"<UserRecord(id={self.id}, username={self.username}, role={self.role})>"


class LeadRecord(Base):
    """
    Lead with claim metadata and the three ordered progress flags.

    Flags are only ever written as individual columns, never as a whole-row
    snapshot. `version` is bumped by every workflow write.
    """
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Descriptive attributes
    name = Column(String(200), nullable=False)
    company = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    source = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="new", comment="Sales status, not workflow-governed")
    notes = Column(Text, nullable=True)
    value = Column(Float, nullable=True, comment="Estimated value")

    # Claim
    claimed = Column(Boolean, nullable=False, default=False)
    claimed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    claimed_at = Column(DateTime, nullable=True)

    # Progress flags
    contact_complete = Column(Boolean, nullable=False, default=False)
    items_confirmed = Column(Boolean, nullable=False, default=False)
    submitted_to_design = Column(Boolean, nullable=False, default=False)

    # Metadata
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    claimed_by = relationship("UserRecord", back_populates="claimed_leads")
    contact_logs = relationship("ContactLogRecord", back_populates="lead", order_by="ContactLogRecord.timestamp")

    __table_args__ = (
        CheckConstraint(
            '(claimed AND claimed_by_id IS NOT NULL) OR (NOT claimed AND claimed_by_id IS NULL)',
            name='ck_lead_claim_consistent',
        ),
        CheckConstraint('version >= 1', name='ck_lead_version_positive'),
        Index('ix_lead_claimed_created', 'claimed', 'created_at'),
        Index('ix_lead_claimed_by', 'claimed_by_id'),
    )

    def __repr__(self):
        return f"<LeadRecord(id={self.id}, name={self.name}, claimed={self.claimed}, version={self.version})>"


class ContactLogRecord(Base):
    """Append-only contact log entry."""
    __tablename__ = "contact_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    contact_method = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=_utcnow, nullable=False)

    lead = relationship("LeadRecord", back_populates="contact_logs")

    __table_args__ = (
        Index('ix_contact_log_lead_time', 'lead_id', 'timestamp'),
    )


class ActivityRecord(Base):
    """Audit trail row for a lead mutation."""
    __tablename__ = "lead_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(JSONB, nullable=True)
    timestamp = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        Index('ix_activity_lead_time', 'lead_id', 'timestamp'),
    )

"""
Database package for the lead workflow service.

Exports:
- ORM models (UserRecord, LeadRecord, ContactLogRecord, ActivityRecord)
- Connection helpers (engine, session factory, session scope)
- LeadRepository / LeadStore data access
"""

from .models import (
    Base,
    UserRecord,
    LeadRecord,
    ContactLogRecord,
    ActivityRecord,
)
from .connection import (
    create_sync_engine,
    create_session_factory,
    session_scope,
    create_tables,
)
from .lead_repository import LeadRepository
from .lead_store import LeadStore

__all__ = [
    # Models
    "Base",
    "UserRecord",
    "LeadRecord",
    "ContactLogRecord",
    "ActivityRecord",
    # Connection
    "create_sync_engine",
    "create_session_factory",
    "session_scope",
    "create_tables",
    # Data access
    "LeadRepository",
    "LeadStore",
]

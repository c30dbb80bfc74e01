"""Lead Store.

Owns the engine and session factory for the lead workflow database and hands
out transaction-scoped repositories.

Usage:
    store = LeadStore.from_settings()
    with store.transaction() as repo:
        lead = repo.get_lead(lead_id)
        repo.claim_lead(lead_id, user_id, utcnow())
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional

from sqlalchemy.engine import Engine

from config.database import DatabaseSettings, get_database_settings, sqlite_settings
from lead_workflow.models import Principal
from rbac.roles import Role

from .connection import create_session_factory, create_sync_engine, create_tables, session_scope
from .lead_repository import LeadRepository

logger = logging.getLogger(__name__)


class LeadStore:
    """
    Transactional access to users, leads, contact logs and activities.

    Each `transaction()` is one unit of work: everything written through the
    yielded repository commits together or not at all.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_settings(cls, settings: Optional[DatabaseSettings] = None) -> "LeadStore":
        """Build a store from settings and make sure the schema exists."""
        store = cls(create_sync_engine(settings or get_database_settings()))
        store.create_tables()
        return store

    @classmethod
    def for_sqlite(cls, path: Path) -> "LeadStore":
        return cls.from_settings(sqlite_settings(path))

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_tables(self) -> None:
        create_tables(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Generator[LeadRepository, None, None]:
        """
        Yield a repository bound to a new session.

        Commits on clean exit, rolls back on any exception.
        """
        with session_scope(self._session_factory) as session:
            yield LeadRepository(session)

    # =========================================================================
    # CONVENIENCE (single-statement transactions)
    # =========================================================================

    def get_user(self, user_id: int) -> Optional[Principal]:
        with self.transaction() as repo:
            return repo.get_user(user_id)

    def list_users(self) -> List[Principal]:
        with self.transaction() as repo:
            return repo.list_users()

    def create_user(
        self,
        username: str,
        role: Role,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        custom_permissions: Optional[List[str]] = None,
    ) -> Principal:
        with self.transaction() as repo:
            principal = repo.insert_user(
                username=username,
                role=role,
                full_name=full_name,
                email=email,
                custom_permissions=custom_permissions,
            )
        logger.info(f"Created user {principal.id} ({username}, role={role.value})")
        return principal

    def set_user_permissions(
        self,
        user_id: int,
        custom_permissions: Optional[List[str]],
    ) -> Optional[Principal]:
        with self.transaction() as repo:
            principal = repo.set_user_permissions(user_id, custom_permissions)
        if principal is not None:
            logger.info(
                f"Updated permission override for user {user_id}",
                extra={"extra_data": {"custom_permissions": list(custom_permissions or [])}},
            )
        return principal

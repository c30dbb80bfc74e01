"""
Database Connection Module

Provides sync engine and session management for the lead workflow store.

Usage:
    engine = create_sync_engine(get_database_settings())
    factory = create_session_factory(engine)
    with session_scope(factory) as session:
        result = session.execute(query)
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, QueuePool

from config.database import DatabaseSettings
from .models import Base

logger = logging.getLogger(__name__)


def create_sync_engine(settings: DatabaseSettings) -> Engine:
    """
    Create a new synchronous SQLAlchemy engine.

    SQLite uses NullPool so every session gets its own connection; the
    database file serializes writers.
    """
    logger.info(
        f"Creating sync database engine",
        extra={
            "extra_data": {
                "driver": settings.driver,
                "database": settings.name if settings.is_postgres else str(settings.sqlite_path),
            }
        },
    )

    # Pool configuration differs for SQLite vs PostgreSQL
    if settings.is_sqlite:
        pool_class = NullPool
        pool_kwargs = {}
    else:
        pool_class = QueuePool
        pool_kwargs = {
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "pool_timeout": settings.pool_timeout,
            "pool_recycle": settings.pool_recycle,
            "pool_pre_ping": settings.pool_pre_ping,
        }

    return create_engine(
        settings.sync_url,
        echo=settings.echo_sql,
        poolclass=pool_class,
        connect_args=settings.get_connect_args(),
        **pool_kwargs,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory with the options the store relies on."""
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Open a session from `factory` that commits on success and rolls back on error.
    """
    session = factory()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(engine)
    logger.debug("Database tables ensured")

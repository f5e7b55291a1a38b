"""Database engine and declarative base."""
import threading
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.config import get_settings

_engine = None
_engine_lock = threading.Lock()


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def build_engine(database_url: str, lock_timeout: Optional[float] = None):
    """Create an engine for the given URL.

    In-memory SQLite needs a single shared connection, otherwise every
    checkout sees an empty database. File SQLite waits up to
    ``lock_timeout`` seconds for another writer's lock.
    """
    if database_url == "sqlite://" or database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        if lock_timeout is None:
            lock_timeout = get_settings().MUTATION_LOCK_TIMEOUT_SECONDS
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout},
        )
    return create_engine(database_url, pool_pre_ping=True)


def get_engine():
    """Get or create the SQLAlchemy engine (thread-safe singleton)."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = build_engine(get_settings().DATABASE_URL)
    return _engine


def init_db(engine=None) -> None:
    """Create missing tables (development; production uses alembic)."""
    import app.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())

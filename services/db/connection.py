"""Database engine and session helpers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from services.config import config
from services.errors import StorageFailure

log = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def _sqlite_url(db_path: str) -> str:
    if db_path == ":memory:":
        return "sqlite://"
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def create_db_engine(url: str) -> Engine:
    """Create an engine for `url`. In-memory SQLite shares one connection."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def get_engine(db_path: Optional[str] = None) -> Engine:
    """Return the process-wide engine, creating it on first use.

    An explicit `db_path` always builds a fresh engine (used by tests and
    scripts); otherwise `DATABASE_URL` wins over `DB_PATH`.
    """
    global _engine
    if db_path is not None:
        return create_db_engine(_sqlite_url(db_path))
    if _engine is None:
        url = config.DATABASE_URL or _sqlite_url(config.DB_PATH)
        _engine = create_db_engine(url)
    return _engine


@contextmanager
def session_scope(engine: Optional[Engine] = None) -> Iterator[Session]:
    """Session that commits on exit and rolls back on any error.

    Database errors are logged and re-raised as StorageFailure so callers
    never see a half-written unit of work.
    """
    session = Session(engine or get_engine(), expire_on_commit=False)
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        log.error(f"Database operation failed: {e}", exc_info=True)
        raise StorageFailure("Database operation failed") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

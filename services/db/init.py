"""Create the Breaktool tables."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from .connection import get_engine
from .models import *  # noqa: F401,F403

log = logging.getLogger(__name__)


def init_db(db_path: Optional[str] = None, engine: Optional[Engine] = None) -> Engine:
    """Create any missing tables on `engine` (or the configured one)."""
    engine = engine or get_engine(db_path)
    SQLModel.metadata.create_all(engine)
    log.info(f"Database schema ready at {engine.url}")
    return engine

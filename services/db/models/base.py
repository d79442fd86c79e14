"""Base models and enums shared across SQLModel tables."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp.

    SQLModel defaults to naive datetimes; every table stores UTC through this
    helper so SQLite never mixes in local time.
    """

    return datetime.now(timezone.utc)


def new_id() -> str:
    """Random opaque id for tools and reviews."""
    return uuid.uuid4().hex


class TimeStamped(SQLModel, table=False):
    """Mixin that stores creation/update timestamps in UTC."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class UserRole(str, Enum):
    USER = "user"
    VERIFIED_TESTER = "verified_tester"
    VENDOR = "vendor"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ReviewType(str, Enum):
    COMMUNITY = "community"
    VERIFIED_TESTER = "verified_tester"
    ADMIN = "admin"


class VoteType(str, Enum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"


class Verdict(str, Enum):
    KEEP = "keep"
    TRY = "try"
    STOP = "stop"


class SendQueueStatus(str, Enum):
    # PENDING is written here; SENT and FAILED by the external delivery worker
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive values read back from SQLite."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

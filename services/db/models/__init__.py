"""Aggregate exports for SQLModel tables."""

from .base import (
    ReviewType,
    SendQueueStatus,
    TimeStamped,
    UserRole,
    Verdict,
    VoteType,
    ensure_utc,
    new_id,
    utcnow,
)
from .observability import SendQueue
from .review import Review, ReviewVote
from .tool import Tool
from .user import User

__all__ = [
    "Review",
    "ReviewType",
    "ReviewVote",
    "SendQueue",
    "SendQueueStatus",
    "TimeStamped",
    "Tool",
    "User",
    "UserRole",
    "Verdict",
    "VoteType",
    "ensure_utc",
    "new_id",
    "utcnow",
]

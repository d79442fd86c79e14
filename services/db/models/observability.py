"""Notification outbox table."""

from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .base import SendQueueStatus, TimeStamped


class SendQueue(TimeStamped, SQLModel, table=True):
    """Outgoing notification.

    Rows are written `pending`; the delivery worker, which runs outside this
    service, moves them to `sent` or `failed`.
    """

    __tablename__ = "send_queue"

    id: Optional[int] = Field(default=None, primary_key=True)

    # Target; None means a broadcast topic
    user_id: Optional[str] = Field(default=None, index=True, max_length=64)

    # Payload
    scope: str = Field(index=True, max_length=64)  # trust_score_update, verdict_update
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Status
    status: SendQueueStatus = Field(default=SendQueueStatus.PENDING, index=True)

    # Reference (for deduplication), e.g. the tool or user id
    ref_id: Optional[str] = Field(default=None, max_length=64, index=True)

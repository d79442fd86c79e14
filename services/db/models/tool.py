"""Reviewed SaaS tools."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .base import TimeStamped, Verdict, new_id


class Tool(TimeStamped, SQLModel, table=True):
    """A tool listed in the directory.

    The score and verdict columns are derived from the tool's reviews and are
    overwritten as a whole by VerdictAggregator.
    """

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    name: str = Field(max_length=256, index=True)
    slug: str = Field(max_length=256, unique=True, index=True)
    website: Optional[str] = Field(default=None, max_length=512)
    description: Optional[str] = None

    # Trust-weighted means over the tool's reviews (0-10)
    overall_score: Optional[float] = Field(default=None)
    value_score: Optional[float] = Field(default=None)
    usage_score: Optional[float] = Field(default=None)
    integration_score: Optional[float] = Field(default=None)

    verdict: Optional[Verdict] = Field(default=None, index=True)
    verdict_confidence: int = Field(default=0, index=True)
    verdict_factors: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    # None until the first calculation
    verdict_updated_at: Optional[datetime] = Field(default=None)

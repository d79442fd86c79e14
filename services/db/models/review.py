"""Reviews and the helpful-vote ledger."""

from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import ReviewType, TimeStamped, VoteType, new_id


class Review(TimeStamped, SQLModel, table=True):
    """A user's evaluation of one tool.

    `helpful_votes` and `total_votes` cache counts of ReviewVote rows and are
    only ever rewritten from a fresh recount.
    """

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    tool_id: str = Field(foreign_key="tool.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    type: ReviewType = Field(default=ReviewType.COMMUNITY, index=True)

    title: Optional[str] = Field(default=None, max_length=256)
    content: Optional[str] = None

    # 0-10, all optional
    overall_score: Optional[float] = Field(default=None)
    value_score: Optional[float] = Field(default=None)
    usage_score: Optional[float] = Field(default=None)
    integration_score: Optional[float] = Field(default=None)

    helpful_votes: int = Field(default=0)
    total_votes: int = Field(default=0)

    # JSON list of user ids
    bookmarked_by: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))


class ReviewVote(TimeStamped, SQLModel, table=True):
    """One user's vote on one review; re-voting overwrites `vote_type`."""

    __tablename__ = "review_vote"
    __table_args__ = (UniqueConstraint("review_id", "user_id", name="uq_review_vote_review_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    review_id: str = Field(foreign_key="review.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    vote_type: VoteType = Field(index=True)

# services/db/models/user.py
from datetime import datetime
from typing import Optional
from sqlmodel import Field, SQLModel

from .base import TimeStamped, UserRole

class User(TimeStamped, SQLModel, table=True):
    """Community member. The primary key is the identity provider's user id."""
    id: str = Field(primary_key=True, max_length=64)
    name: Optional[str] = Field(default=None, max_length=128)
    email: Optional[str] = Field(default=None, max_length=256, index=True)
    avatar_url: Optional[str] = Field(default=None, max_length=512)
    role: UserRole = Field(default=UserRole.USER, index=True)
    is_verified_tester: bool = Field(default=False)

    # Reputation, written only by TrustScoreEngine
    trust_score: int = Field(default=0, index=True)
    helpful_votes_received: int = Field(default=0)
    trust_score_updated_at: Optional[datetime] = Field(default=None)

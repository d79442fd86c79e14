"""Result models returned by the review services."""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel

from services.db.models import Verdict, VoteType


class VoteResult(BaseModel):
    review_id: str
    user_id: str
    vote_type: VoteType
    helpful_votes: int
    total_votes: int


class TrustScoreFactors(BaseModel):
    review_count: int
    helpfulness: float
    helpful_votes_received: int
    total_votes_received: int
    activity_recency: float
    verified_expertise: bool
    role_bonus: float


class TrustScoreResult(BaseModel):
    user_id: str
    score: int
    badge: Optional[str] = None
    # False for a user whose score has never been calculated
    computed: bool = True
    last_calculated: Optional[datetime] = None
    display_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    factors: Optional[TrustScoreFactors] = None


class VerdictFactors(BaseModel):
    total_reviews: int = 0
    contributing_reviews: int = 0
    verified_tester_reviews: int = 0
    admin_reviews: int = 0
    community_reviews: int = 0
    average_rating: float = 0.0
    weighted_overall: Optional[float] = None
    total_weight: float = 0.0
    effective_reviews: float = 0.0
    helpful_votes: int = 0
    total_votes: int = 0
    breakdown: Dict[str, int] = {"keep": 0, "try": 0, "stop": 0}


class ScoreBreakdown(BaseModel):
    overall: Optional[float] = None
    value: Optional[float] = None
    usage: Optional[float] = None
    integration: Optional[float] = None


class VerdictResult(BaseModel):
    tool_id: str
    # computed | insufficient_data | not_computed
    status: str
    verdict: Optional[Verdict] = None
    confidence: int = 0
    score_breakdown: ScoreBreakdown = ScoreBreakdown()
    factors: VerdictFactors = VerdictFactors()
    explanation: str = ""
    last_calculated: Optional[datetime] = None

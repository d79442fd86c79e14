"""
Scoring rules for trust scores and tool verdicts.

Every weight, cap and threshold used by TrustScoreEngine and
VerdictAggregator lives here so the rules can be audited (and swapped in
tests) in one place.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from services.db.models import UserRole


def round_half_up(value: float) -> int:
    """Round .5 away from zero (Python's round() is banker's rounding)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


@dataclass(frozen=True)
class TrustRules:
    """Points per trust signal. Scores are clamped to [MIN_SCORE, MAX_SCORE]."""
    MIN_SCORE: int = 0
    MAX_SCORE: int = 100

    # Volume: diminishing returns via a hard cap
    POINTS_PER_REVIEW: float = 5.0
    VOLUME_CAP: float = 30.0

    # Helpfulness ratio of votes received; NEUTRAL_HELPFULNESS when no votes
    HELPFULNESS_POINTS: float = 25.0
    NEUTRAL_HELPFULNESS: float = 0.5

    POINTS_PER_HELPFUL_VOTE: float = 2.0
    HELPFUL_VOTES_CAP: float = 20.0

    # Linear decay from the most recent review
    RECENCY_POINTS: float = 15.0
    RECENCY_WINDOW_DAYS: int = 365

    VERIFIED_TESTER_BONUS: float = 10.0
    ROLE_BONUS: Dict[UserRole, float] = field(default_factory=lambda: {
        UserRole.ADMIN: 5.0,
        UserRole.SUPER_ADMIN: 5.0,
    })

    @property
    def baseline_score(self) -> int:
        """Score of a user with no reviews, no votes and no bonuses."""
        return round_half_up(self.HELPFULNESS_POINTS * self.NEUTRAL_HELPFULNESS)


# Badge bands, highest first
TRUST_BADGES = [
    (90, "Top Expert"),
    (80, "Verified Expert"),
    (70, "Trusted Reviewer"),
    (50, "Active Contributor"),
    (30, "New Reviewer"),
]


@dataclass(frozen=True)
class VerdictRules:
    """Review weighting, verdict thresholds and confidence parameters."""
    # weight = (BASE_WEIGHT + trust_score / 100) * role multiplier, capped
    BASE_WEIGHT: float = 0.5
    MAX_REVIEW_WEIGHT: float = 2.5
    COMMUNITY_MULTIPLIER: float = 1.0
    VERIFIED_TESTER_MULTIPLIER: float = 1.5
    ADMIN_MULTIPLIER: float = 2.0

    # overall >= KEEP -> keep; overall < STOP -> stop; otherwise try
    KEEP_THRESHOLD: float = 8.0
    STOP_THRESHOLD: float = 4.0

    # Confidence (0-100)
    SATURATION_REVIEWS: int = 10
    EXPERT_SATURATION_REVIEWS: int = 3
    VOLUME_POINTS: float = 60.0
    CONCENTRATION_POINTS: float = 20.0
    EXPERT_POINTS: float = 20.0
    MAX_CONFIDENCE: int = 100


@dataclass(frozen=True)
class ScoringRules:
    trust: TrustRules = field(default_factory=TrustRules)
    verdict: VerdictRules = field(default_factory=VerdictRules)


DEFAULT_RULES = ScoringRules()


def determine_badge(score: int) -> Optional[str]:
    for floor, badge in TRUST_BADGES:
        if score >= floor:
            return badge
    return None

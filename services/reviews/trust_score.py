"""Trust scores: bounded 0-100 reputation per user."""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from sqlmodel import Session, col, select

from services.db.models import Review, User, ensure_utc, utcnow
from services.errors import NotFound
from services.reviews.rules import DEFAULT_RULES, ScoringRules, determine_badge, round_half_up
from services.reviews.schemas import TrustScoreFactors, TrustScoreResult

log = logging.getLogger(__name__)


def compute_trust_factors(
    user: User,
    reviews: Sequence[Review],
    now: datetime,
    rules: ScoringRules = DEFAULT_RULES,
) -> TrustScoreFactors:
    """Collect the trust signals for `user` from their reviews."""
    trust = rules.trust
    helpful = sum(r.helpful_votes or 0 for r in reviews)
    total = sum(r.total_votes or 0 for r in reviews)
    helpfulness = helpful / total if total > 0 else trust.NEUTRAL_HELPFULNESS

    recency = 0.0
    if reviews:
        latest = max(ensure_utc(r.created_at) for r in reviews)
        days = max(0, (now - latest).days)
        recency = max(0.0, 1.0 - days / trust.RECENCY_WINDOW_DAYS)

    return TrustScoreFactors(
        review_count=len(reviews),
        helpfulness=helpfulness,
        helpful_votes_received=helpful,
        total_votes_received=total,
        activity_recency=recency,
        verified_expertise=bool(user.is_verified_tester),
        role_bonus=trust.ROLE_BONUS.get(user.role, 0.0),
    )


def score_from_factors(factors: TrustScoreFactors, rules: ScoringRules = DEFAULT_RULES) -> int:
    trust = rules.trust
    score = 0.0
    score += min(factors.review_count * trust.POINTS_PER_REVIEW, trust.VOLUME_CAP)
    score += factors.helpfulness * trust.HELPFULNESS_POINTS
    score += min(factors.helpful_votes_received * trust.POINTS_PER_HELPFUL_VOTE, trust.HELPFUL_VOTES_CAP)
    score += factors.activity_recency * trust.RECENCY_POINTS
    score += trust.VERIFIED_TESTER_BONUS if factors.verified_expertise else 0.0
    score += factors.role_bonus
    return max(trust.MIN_SCORE, min(round_half_up(score), trust.MAX_SCORE))


class TrustScoreEngine:
    """Computes and reads User.trust_score.

    `calculate_trust_score` recomputes and overwrites; `get_trust_score` only
    reads the last persisted value.
    """

    def __init__(
        self,
        session: Session,
        rules: ScoringRules = DEFAULT_RULES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.rules = rules
        self.clock = clock

    def calculate_trust_score(self, user_id: str) -> TrustScoreResult:
        user = self._get_user(user_id)
        reviews = self.session.exec(select(Review).where(Review.user_id == user_id)).all()

        now = self.clock()
        factors = compute_trust_factors(user, reviews, now, self.rules)
        score = score_from_factors(factors, self.rules)

        previous = user.trust_score
        user.trust_score = score
        user.helpful_votes_received = factors.helpful_votes_received
        user.trust_score_updated_at = now
        user.updated_at = now
        self.session.add(user)
        self.session.commit()

        if previous != score:
            log.info(f"Trust score for {user_id}: {previous} -> {score}")

        return self._to_result(user, factors=factors)

    def get_trust_score(self, user_id: str) -> TrustScoreResult:
        return self._to_result(self._get_user(user_id))

    def get_top_trusted_users(self, limit: int = 10) -> List[TrustScoreResult]:
        """Users with a positive score, highest first."""
        stmt = (
            select(User)
            .where(User.trust_score > 0)
            .order_by(col(User.trust_score).desc(), col(User.id))
            .limit(limit)
        )
        return [self._to_result(u) for u in self.session.exec(stmt).all()]

    def _get_user(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFound(f"User {user_id} not found")
        return user

    @staticmethod
    def _to_result(user: User, factors: Optional[TrustScoreFactors] = None) -> TrustScoreResult:
        computed = user.trust_score_updated_at is not None
        return TrustScoreResult(
            user_id=user.id,
            score=user.trust_score or 0,
            badge=determine_badge(user.trust_score or 0),
            computed=computed,
            last_calculated=ensure_utc(user.trust_score_updated_at) if computed else None,
            display_name=user.name,
            profile_image_url=user.avatar_url,
            factors=factors,
        )

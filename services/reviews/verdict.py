"""Consensus verdicts for tools, weighted by reviewer trust."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, col, select

from services.db.models import Review, ReviewType, Tool, User, UserRole, Verdict, ensure_utc, utcnow
from services.errors import NotFound
from services.reviews.rules import DEFAULT_RULES, ScoringRules, VerdictRules, round_half_up
from services.reviews.schemas import ScoreBreakdown, VerdictFactors, VerdictResult

log = logging.getLogger(__name__)

ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)

# Result.status values
STATUS_COMPUTED = "computed"
STATUS_INSUFFICIENT = "insufficient_data"
STATUS_NOT_COMPUTED = "not_computed"

# review attribute -> ScoreBreakdown field
SUB_SCORES = {
    "overall_score": "overall",
    "value_score": "value",
    "usage_score": "usage",
    "integration_score": "integration",
}


def review_weight(review: Review, author: User, rules: VerdictRules) -> float:
    """Weight of one review: grows with the author's trust score, capped."""
    trust = max(0, min(author.trust_score or 0, 100))
    if author.role in ADMIN_ROLES or review.type == ReviewType.ADMIN:
        multiplier = rules.ADMIN_MULTIPLIER
    elif author.is_verified_tester or review.type == ReviewType.VERIFIED_TESTER:
        multiplier = rules.VERIFIED_TESTER_MULTIPLIER
    else:
        multiplier = rules.COMMUNITY_MULTIPLIER
    return min((rules.BASE_WEIGHT + trust / 100) * multiplier, rules.MAX_REVIEW_WEIGHT)


def review_overall(review: Review) -> Optional[float]:
    """The review's overall score, falling back to the mean of its sub-scores."""
    if review.overall_score is not None:
        return review.overall_score
    subs = [s for s in (review.value_score, review.usage_score, review.integration_score) if s is not None]
    if not subs:
        return None
    return sum(subs) / len(subs)


def classify(score: float, rules: VerdictRules) -> Verdict:
    if score >= rules.KEEP_THRESHOLD:
        return Verdict.KEEP
    if score < rules.STOP_THRESHOLD:
        return Verdict.STOP
    return Verdict.TRY


def weighted_mean(pairs: Sequence[Tuple[float, float]]) -> Optional[float]:
    """Mean of (value, weight) pairs; None when there is nothing to average."""
    total_weight = sum(w for _, w in pairs)
    if not pairs or total_weight <= 0:
        return None
    return sum(v * w for v, w in pairs) / total_weight


def confidence_score(weights: Sequence[float], expert_reviews: int, rules: VerdictRules) -> int:
    """Evidence behind a verdict, 0-100.

    Rises with the number of reviews until SATURATION_REVIEWS, is reduced when
    a few reviews carry most of the weight, and gets extra credit for
    verified-tester and admin reviews.
    """
    n = len(weights)
    if n == 0:
        return 0
    volume = min(n / rules.SATURATION_REVIEWS, 1.0)
    sum_w = sum(weights)
    sum_w2 = sum(w * w for w in weights)
    evenness = (sum_w * sum_w / sum_w2) / n if sum_w2 > 0 else 0.0
    expert = min(expert_reviews / rules.EXPERT_SATURATION_REVIEWS, 1.0)

    confidence = (
        rules.VOLUME_POINTS * volume
        + rules.CONCENTRATION_POINTS * evenness * volume
        + rules.EXPERT_POINTS * expert
    )
    return max(0, min(round_half_up(confidence), rules.MAX_CONFIDENCE))


def generate_explanation(verdict: Optional[Verdict], factors: VerdictFactors) -> str:
    if verdict is None:
        if factors.total_reviews == 0:
            return "No reviews available yet. More reviews are needed to provide a recommendation."
        return (
            f"Limited review data available ({factors.total_reviews} reviews). "
            f"More scored reviews are needed to provide a reliable recommendation."
        )

    n = factors.contributing_reviews
    share = round(100 * factors.breakdown.get(verdict.value, 0) / n) if n else 0
    head = (
        f"Based on {n} reviews with a trust-weighted score of "
        f"{factors.weighted_overall:.1f}/10. "
    )
    if verdict == Verdict.KEEP:
        return head + (
            f"{share}% of reviewers rate it worth keeping. "
            f"{factors.verified_tester_reviews} verified tester reviews and "
            f"{factors.admin_reviews} admin reviews support this recommendation."
        )
    if verdict == Verdict.TRY:
        return head + (
            f"{share}% of reviewers suggest trying it. "
            f"Test it against your own use case before committing."
        )
    return head + (
        f"{share}% of reviewers recommend avoiding it. "
        f"Consider alternatives or wait for improvements."
    )


@dataclass
class _Scored:
    review: Review
    author: User
    weight: float
    overall: Optional[float]


class VerdictAggregator:
    """Computes and reads the verdict and aggregate scores of tools.

    `calculate_tool_verdict` recomputes from the tool's current reviews and
    overwrites the tool's derived columns; the `get_*` methods only read them.
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

    def calculate_tool_verdict(self, tool_id: str) -> VerdictResult:
        tool = self._get_tool(tool_id)
        rules = self.rules.verdict

        # Reviews and their authors in one query
        stmt = (
            select(Review, User)
            .join(User, Review.user_id == User.id)
            .where(Review.tool_id == tool_id)
            .order_by(col(Review.created_at))
        )
        scored = [
            _Scored(review=r, author=u, weight=review_weight(r, u, rules), overall=review_overall(r))
            for r, u in self.session.exec(stmt).all()
        ]
        contributing = [s for s in scored if s.overall is not None]

        factors = self._collect_factors(scored, contributing)
        breakdown = ScoreBreakdown(
            overall=weighted_mean([(s.overall, s.weight) for s in contributing]),
            **{
                label: weighted_mean([
                    (getattr(s.review, attr), s.weight)
                    for s in scored
                    if getattr(s.review, attr) is not None
                ])
                for attr, label in SUB_SCORES.items()
                if attr != "overall_score"
            },
        )

        if contributing:
            verdict = classify(breakdown.overall, rules)
            confidence = confidence_score(
                [s.weight for s in contributing],
                factors.verified_tester_reviews + factors.admin_reviews,
                rules,
            )
            status = STATUS_COMPUTED
        else:
            verdict, confidence, status = None, 0, STATUS_INSUFFICIENT
        factors.weighted_overall = breakdown.overall

        now = self.clock()
        previous = tool.verdict
        tool.overall_score = breakdown.overall
        tool.value_score = breakdown.value
        tool.usage_score = breakdown.usage
        tool.integration_score = breakdown.integration
        tool.verdict = verdict
        tool.verdict_confidence = confidence
        tool.verdict_factors = factors.model_dump(mode="json")
        tool.verdict_updated_at = now
        tool.updated_at = now
        self.session.add(tool)
        self.session.commit()

        if previous != verdict:
            log.info(
                f"Verdict for tool {tool_id}: {previous.value if previous else None} -> "
                f"{verdict.value if verdict else None} (confidence {confidence})"
            )

        return VerdictResult(
            tool_id=tool_id,
            status=status,
            verdict=verdict,
            confidence=confidence,
            score_breakdown=breakdown,
            factors=factors,
            explanation=generate_explanation(verdict, factors),
            last_calculated=now,
        )

    def get_tool_verdict(self, tool_id: str) -> VerdictResult:
        return self._to_result(self._get_tool(tool_id))

    def get_all_tool_verdicts(self) -> List[VerdictResult]:
        """Every tool with a verdict, most confident first, in one query."""
        stmt = (
            select(Tool)
            .where(col(Tool.verdict).is_not(None))
            .order_by(col(Tool.verdict_confidence).desc(), col(Tool.name))
        )
        return [self._to_result(t) for t in self.session.exec(stmt).all()]

    def _collect_factors(self, scored: List[_Scored], contributing: List[_Scored]) -> VerdictFactors:
        rules = self.rules.verdict
        admin = sum(1 for s in scored if s.author.role in ADMIN_ROLES or s.review.type == ReviewType.ADMIN)
        verified = sum(
            1 for s in scored
            if not (s.author.role in ADMIN_ROLES or s.review.type == ReviewType.ADMIN)
            and (s.author.is_verified_tester or s.review.type == ReviewType.VERIFIED_TESTER)
        )
        breakdown: Dict[str, int] = {v.value: 0 for v in Verdict}
        for s in contributing:
            breakdown[classify(s.overall, rules).value] += 1

        weights = [s.weight for s in contributing]
        sum_w = sum(weights)
        sum_w2 = sum(w * w for w in weights)
        return VerdictFactors(
            total_reviews=len(scored),
            contributing_reviews=len(contributing),
            verified_tester_reviews=verified,
            admin_reviews=admin,
            community_reviews=len(scored) - verified - admin,
            average_rating=(sum(s.overall for s in contributing) / len(contributing)) if contributing else 0.0,
            total_weight=sum_w,
            effective_reviews=(sum_w * sum_w / sum_w2) if sum_w2 > 0 else 0.0,
            helpful_votes=sum(s.review.helpful_votes or 0 for s in scored),
            total_votes=sum(s.review.total_votes or 0 for s in scored),
            breakdown=breakdown,
        )

    def _get_tool(self, tool_id: str) -> Tool:
        tool = self.session.get(Tool, tool_id)
        if not tool:
            raise NotFound(f"Tool {tool_id} not found")
        return tool

    @staticmethod
    def _to_result(tool: Tool) -> VerdictResult:
        if tool.verdict_updated_at is None:
            status = STATUS_NOT_COMPUTED
        elif tool.verdict is None:
            status = STATUS_INSUFFICIENT
        else:
            status = STATUS_COMPUTED
        factors = VerdictFactors(**(tool.verdict_factors or {}))
        return VerdictResult(
            tool_id=tool.id,
            status=status,
            verdict=tool.verdict,
            confidence=tool.verdict_confidence or 0,
            score_breakdown=ScoreBreakdown(
                overall=tool.overall_score,
                value=tool.value_score,
                usage=tool.usage_score,
                integration=tool.integration_score,
            ),
            factors=factors,
            explanation=generate_explanation(tool.verdict, factors) if status != STATUS_NOT_COMPUTED else "",
            last_calculated=ensure_utc(tool.verdict_updated_at) if tool.verdict_updated_at else None,
        )

"""Tool verdicts: trust weighting, thresholds, confidence and the read path."""

import pytest
from sqlalchemy import event

from services.db.models import ReviewType, Tool, UserRole, Verdict
from services.errors import NotFound
from services.reviews.rules import DEFAULT_RULES
from services.reviews.verdict import (
    STATUS_COMPUTED,
    STATUS_INSUFFICIENT,
    STATUS_NOT_COMPUTED,
    VerdictAggregator,
    classify,
    confidence_score,
    review_weight,
)

from conftest import FIXED_NOW, fixed_clock

RULES = DEFAULT_RULES.verdict


@pytest.fixture
def aggregator(session):
    return VerdictAggregator(session, clock=fixed_clock)


def test_tool_without_reviews_is_insufficient(aggregator, session, make_tool):
    tool = make_tool("empty")
    result = aggregator.calculate_tool_verdict(tool.id)

    assert result.status == STATUS_INSUFFICIENT
    assert result.verdict is None
    assert result.confidence == 0
    assert result.score_breakdown.overall is None

    session.refresh(tool)
    assert tool.verdict is None
    assert tool.verdict_updated_at is not None
    assert aggregator.get_tool_verdict(tool.id).status == STATUS_INSUFFICIENT


def test_trusted_reviewer_pulls_verdict(aggregator, make_user, make_tool, make_review):
    tool = make_tool("zapier")
    expert = make_user("expert", trust_score=90)
    novice = make_user("novice", trust_score=10)
    make_review(tool, expert, overall_score=9)
    make_review(tool, novice, overall_score=3)

    result = aggregator.calculate_tool_verdict(tool.id)

    # weights 1.4 and 0.6: (9*1.4 + 3*0.6) / 2.0
    assert result.score_breakdown.overall == pytest.approx(7.2)
    assert 6.0 < result.score_breakdown.overall < 9.0
    assert result.verdict == Verdict.TRY
    assert result.factors.average_rating == pytest.approx(6.0)
    assert result.factors.breakdown == {"keep": 1, "try": 0, "stop": 1}


@pytest.mark.parametrize("scores,expected", [
    ([9, 8.5, 10], Verdict.KEEP),
    ([2, 3, 3.5], Verdict.STOP),
    ([5, 6, 7], Verdict.TRY),
])
def test_verdict_follows_weighted_score(aggregator, make_user, make_tool, make_review, scores, expected):
    tool = make_tool("tool")
    for i, score in enumerate(scores):
        make_review(tool, make_user(f"r{i}", trust_score=50), overall_score=score)

    assert aggregator.calculate_tool_verdict(tool.id).verdict == expected


@pytest.mark.parametrize("score,expected", [
    (8.0, Verdict.KEEP),
    (7.99, Verdict.TRY),
    (4.0, Verdict.TRY),
    (3.99, Verdict.STOP),
])
def test_threshold_boundaries(score, expected):
    assert classify(score, RULES) == expected


def test_raising_trust_of_high_scorer_raises_score(aggregator, session, make_user, make_tool, make_review):
    tool = make_tool("asana")
    fan = make_user("fan", trust_score=30)
    critic = make_user("critic", trust_score=30)
    make_review(tool, fan, overall_score=9)
    make_review(tool, critic, overall_score=4)

    before = aggregator.calculate_tool_verdict(tool.id).score_breakdown.overall
    fan.trust_score = 80
    session.add(fan)
    session.commit()
    after = aggregator.calculate_tool_verdict(tool.id).score_breakdown.overall

    assert after > before


def test_review_weight_is_capped(make_user, make_tool, make_review):
    tool = make_tool("jira")
    admin = make_user("root", role=UserRole.ADMIN, trust_score=100)
    review = make_review(tool, admin, overall_score=7, review_type=ReviewType.ADMIN)

    assert review_weight(review, admin, RULES) == RULES.MAX_REVIEW_WEIGHT


def test_verified_tester_outweighs_community(make_user, make_tool, make_review):
    tool = make_tool("miro")
    tester = make_user("tester", trust_score=40, is_verified_tester=True)
    member = make_user("member", trust_score=40)
    a = make_review(tool, tester, overall_score=7, review_type=ReviewType.VERIFIED_TESTER)
    b = make_review(tool, member, overall_score=7)

    assert review_weight(a, tester, RULES) > review_weight(b, member, RULES)


def test_confidence_grows_until_saturation():
    values = [confidence_score([1.0] * n, 0, RULES) for n in range(0, RULES.SATURATION_REVIEWS + 5)]
    assert values[0] == 0
    assert values == sorted(values)
    assert values[RULES.SATURATION_REVIEWS] == values[-1]
    assert all(0 <= v <= 100 for v in values)


def test_concentrated_weight_lowers_confidence():
    even = confidence_score([1.0] * 4, 0, RULES)
    lopsided = confidence_score([2.5, 0.1, 0.1, 0.1], 0, RULES)
    assert lopsided < even


def test_expert_reviews_add_confidence():
    assert confidence_score([1.0] * 3, 3, RULES) > confidence_score([1.0] * 3, 0, RULES)


def test_get_returns_what_calculate_stored(aggregator, make_user, make_tool, make_review):
    tool = make_tool("trello")
    make_review(tool, make_user("a", trust_score=60), overall_score=8, value_score=7, usage_score=9)
    make_review(tool, make_user("b", trust_score=20), overall_score=6, integration_score=5)

    computed = aggregator.calculate_tool_verdict(tool.id)
    stored = aggregator.get_tool_verdict(tool.id)

    assert stored.status == STATUS_COMPUTED
    assert stored.verdict == computed.verdict
    assert stored.confidence == computed.confidence
    assert stored.score_breakdown == computed.score_breakdown
    assert stored.factors == computed.factors
    assert stored.last_calculated == FIXED_NOW


def test_get_does_not_recompute(aggregator, make_user, make_tool, make_review):
    tool = make_tool("basecamp")
    assert aggregator.get_tool_verdict(tool.id).status == STATUS_NOT_COMPUTED

    make_review(tool, make_user("a", trust_score=50), overall_score=9)
    result = aggregator.get_tool_verdict(tool.id)
    assert result.status == STATUS_NOT_COMPUTED
    assert result.verdict is None


def test_sub_scores_stand_in_for_missing_overall(aggregator, make_user, make_tool, make_review):
    tool = make_tool("clickup")
    make_review(tool, make_user("a"), value_score=9, usage_score=8, integration_score=10)

    result = aggregator.calculate_tool_verdict(tool.id)
    assert result.score_breakdown.overall == pytest.approx(9.0)
    assert result.verdict == Verdict.KEEP


def test_unknown_tool_is_not_found(aggregator):
    with pytest.raises(NotFound):
        aggregator.calculate_tool_verdict("missing")
    with pytest.raises(NotFound):
        aggregator.get_tool_verdict("missing")


def test_all_verdicts_ordered_in_one_query(aggregator, engine, session, make_user, make_tool, make_review):
    reviewers = [make_user(f"r{i}", trust_score=50) for i in range(5)]
    busy = make_tool("busy", name="Busy")
    quiet = make_tool("quiet", name="Quiet")
    make_tool("never", name="Never")
    for user in reviewers:
        make_review(busy, user, overall_score=8)
    make_review(quiet, reviewers[0], overall_score=2)
    aggregator.calculate_tool_verdict(busy.id)
    aggregator.calculate_tool_verdict(quiet.id)

    statements = []

    def count(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", count)
    try:
        results = aggregator.get_all_tool_verdicts()
    finally:
        event.remove(engine, "before_cursor_execute", count)

    assert [r.tool_id for r in results] == [busy.id, quiet.id]
    assert results[0].confidence > results[1].confidence
    assert len(statements) == 1
    assert session.get(Tool, quiet.id).verdict == Verdict.STOP

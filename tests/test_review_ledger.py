"""Review ledger: vote upserts, counter recounts, reviews and bookmarks."""

from datetime import timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from services.db.models import Review, ReviewType, ReviewVote, UserRole, VoteType
from services.errors import InvalidInput, NotFound
from services.reviews.ledger import ReviewLedger

from conftest import FIXED_NOW


@pytest.fixture
def review(make_user, make_tool, make_review):
    author = make_user("author")
    tool = make_tool("notion")
    return make_review(tool, author, overall_score=8)


def _votes_for(session, review_id):
    return session.exec(select(ReviewVote).where(ReviewVote.review_id == review_id)).all()


def test_first_vote_creates_row_and_counts(session, make_user, review):
    make_user("alice")
    result = ReviewLedger(session).cast_vote(review.id, "alice", "helpful")

    assert result.helpful_votes == 1
    assert result.total_votes == 1
    votes = _votes_for(session, review.id)
    assert len(votes) == 1
    assert votes[0].vote_type == VoteType.HELPFUL


def test_revote_overwrites_instead_of_adding(session, make_user, review):
    make_user("alice")
    ledger = ReviewLedger(session)
    ledger.cast_vote(review.id, "alice", "helpful")
    result = ledger.cast_vote(review.id, "alice", "not_helpful")

    votes = _votes_for(session, review.id)
    assert len(votes) == 1
    assert votes[0].vote_type == VoteType.NOT_HELPFUL
    assert (result.helpful_votes, result.total_votes) == (0, 1)


def test_counters_match_ledger_after_many_votes(session, make_user, review):
    ledger = ReviewLedger(session)
    for i, vote_type in enumerate(["helpful", "helpful", "not_helpful", "helpful", "not_helpful"]):
        make_user(f"voter{i}")
        ledger.cast_vote(review.id, f"voter{i}", vote_type)

    session.refresh(review)
    votes = _votes_for(session, review.id)
    helpful = sum(1 for v in votes if v.vote_type == VoteType.HELPFUL)
    assert review.helpful_votes == helpful == 3
    assert review.total_votes == len(votes) == 5
    assert review.helpful_votes <= review.total_votes


def test_drifted_counters_are_recounted(session, make_user, review):
    review.helpful_votes = 40
    review.total_votes = 99
    session.add(review)
    session.commit()

    make_user("alice")
    result = ReviewLedger(session).cast_vote(review.id, "alice", "helpful")

    session.refresh(review)
    assert (review.helpful_votes, review.total_votes) == (1, 1)
    assert (result.helpful_votes, result.total_votes) == (1, 1)


def test_invalid_vote_type_writes_nothing(session, make_user, review):
    make_user("alice")
    with pytest.raises(InvalidInput):
        ReviewLedger(session).cast_vote(review.id, "alice", "love_it")
    assert _votes_for(session, review.id) == []


@pytest.mark.parametrize("review_id,user_id", [("missing", "alice"), (None, "ghost")])
def test_vote_on_unknown_rows_is_invalid_input(session, make_user, review, review_id, user_id):
    make_user("alice")
    with pytest.raises(InvalidInput):
        ReviewLedger(session).cast_vote(review_id or review.id, user_id, "helpful")
    assert _votes_for(session, review.id) == []


def test_duplicate_vote_rows_are_rejected_by_schema(session, make_user, review):
    make_user("alice")
    session.add(ReviewVote(review_id=review.id, user_id="alice", vote_type=VoteType.HELPFUL))
    session.commit()
    session.add(ReviewVote(review_id=review.id, user_id="alice", vote_type=VoteType.NOT_HELPFUL))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_create_review_defaults_overall_and_type(session, make_user, make_tool):
    make_user("tess", role=UserRole.VERIFIED_TESTER, is_verified_tester=True)
    tool = make_tool("linear")

    review = ReviewLedger(session).create_review(
        tool_id=tool.id,
        user_id="tess",
        title="Solid",
        value_score=8,
        usage_score=7,
        integration_score=9,
    )

    assert review.overall_score == 8.0
    assert review.type == ReviewType.VERIFIED_TESTER
    assert review.helpful_votes == 0 and review.total_votes == 0


def test_create_review_validation(session, make_user, make_tool):
    make_user("alice")
    tool = make_tool("figma")
    ledger = ReviewLedger(session)

    with pytest.raises(InvalidInput):
        ledger.create_review(tool_id=tool.id, user_id="alice", overall_score=11)
    with pytest.raises(InvalidInput):
        ledger.create_review(tool_id=tool.id, user_id="alice", review_type="vendor_pitch")
    with pytest.raises(NotFound):
        ledger.create_review(tool_id="nope", user_id="alice", overall_score=5)
    with pytest.raises(NotFound):
        ledger.create_review(tool_id=tool.id, user_id="ghost", overall_score=5)
    assert session.exec(select(Review)).all() == []


def test_list_tool_reviews_sorted_by_helpful(session, make_user, make_tool, make_review):
    a = make_user("a")
    b = make_user("b")
    tool = make_tool("slack")
    quiet = make_review(tool, a, overall_score=5)
    loud = make_review(tool, b, overall_score=6, helpful_votes=7, total_votes=9)

    reviews = ReviewLedger(session).list_tool_reviews(tool.id, sort="helpful")
    assert [r.id for r in reviews] == [loud.id, quiet.id]

    with pytest.raises(InvalidInput):
        ReviewLedger(session).list_tool_reviews(tool.id, sort="random")


def test_toggle_bookmark(session, make_user, review):
    make_user("alice")
    ledger = ReviewLedger(session)

    assert ledger.toggle_bookmark(review.id, "alice") is True
    assert [r.id for r in ledger.list_bookmarks("alice")] == [review.id]

    assert ledger.toggle_bookmark(review.id, "alice") is False
    assert ledger.list_bookmarks("alice") == []


def test_vote_lands_on_row_written_by_concurrent_request(session, make_user, review):
    make_user("alice")
    # Row committed by another request between validation and upsert
    session.add(ReviewVote(review_id=review.id, user_id="alice", vote_type=VoteType.HELPFUL))
    session.commit()

    result = ReviewLedger(session).cast_vote(review.id, "alice", "not_helpful")

    votes = _votes_for(session, review.id)
    assert len(votes) == 1
    assert votes[0].vote_type == VoteType.NOT_HELPFUL
    assert (result.helpful_votes, result.total_votes) == (0, 1)


def test_list_user_reviews_newest_first(session, make_user, make_tool, make_review):
    author = make_user("prolific")
    old = make_review(make_tool("a"), author, overall_score=5, created_at=FIXED_NOW - timedelta(days=3))
    new = make_review(make_tool("b"), author, overall_score=6)

    assert [r.id for r in ReviewLedger(session).list_user_reviews("prolific")] == [new.id, old.id]


@pytest.mark.parametrize("requested,role,is_tester,expected", [
    ("admin", UserRole.USER, False, ReviewType.COMMUNITY),
    ("admin", UserRole.VERIFIED_TESTER, True, ReviewType.COMMUNITY),
    ("verified_tester", UserRole.USER, False, ReviewType.COMMUNITY),
    ("verified_tester", UserRole.USER, True, ReviewType.VERIFIED_TESTER),
    ("admin", UserRole.SUPER_ADMIN, False, ReviewType.ADMIN),
    ("community", UserRole.ADMIN, False, ReviewType.COMMUNITY),
])
def test_review_type_is_limited_to_author_standing(session, make_user, make_tool, requested, role, is_tester, expected):
    make_user("author", role=role, is_verified_tester=is_tester)
    tool = make_tool("hubspot")

    review = ReviewLedger(session).create_review(
        tool_id=tool.id, user_id="author", review_type=requested, overall_score=10
    )
    assert review.type == expected


def test_bookmarks_match_whole_user_ids(session, make_user, make_tool, make_review, engine):
    author = make_user("author")
    tool = make_tool("dropbox")
    first = make_review(tool, author, overall_score=6)
    second = make_review(tool, author, overall_score=7)
    make_review(tool, author, overall_score=8)
    for user_id in ("al", "alice", "100%_sure"):
        make_user(user_id)

    ledger = ReviewLedger(session)
    ledger.toggle_bookmark(first.id, "alice")
    ledger.toggle_bookmark(second.id, "al")
    ledger.toggle_bookmark(second.id, "100%_sure")

    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", capture)
    try:
        assert [r.id for r in ledger.list_bookmarks("al")] == [second.id]
    finally:
        event.remove(engine, "before_cursor_execute", capture)
    assert any("LIKE" in s for s in statements)

    assert [r.id for r in ledger.list_bookmarks("alice")] == [first.id]
    assert [r.id for r in ledger.list_bookmarks("100%_sure")] == [second.id]
    assert ledger.list_bookmarks("100") == []

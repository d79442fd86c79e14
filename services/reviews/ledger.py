"""Review storage and the helpful-vote ledger."""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, col, select

from services.db.models import Review, ReviewType, ReviewVote, Tool, User, UserRole, VoteType, utcnow
from services.errors import InvalidInput, NotFound
from services.reviews.rules import round_half_up
from services.reviews.schemas import VoteResult

log = logging.getLogger(__name__)

SCORE_FIELDS = ("overall_score", "value_score", "usage_score", "integration_score")
MIN_REVIEW_SCORE = 0.0
MAX_REVIEW_SCORE = 10.0

REVIEW_SORTS = {
    "newest": [col(Review.created_at).desc()],
    "helpful": [col(Review.helpful_votes).desc(), col(Review.created_at).desc()],
    "score": [col(Review.overall_score).desc(), col(Review.created_at).desc()],
}

# Dialects with INSERT ... ON CONFLICT DO UPDATE
UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}

ROLE_REVIEW_TYPES = {
    UserRole.VERIFIED_TESTER: ReviewType.VERIFIED_TESTER,
    UserRole.ADMIN: ReviewType.ADMIN,
    UserRole.SUPER_ADMIN: ReviewType.ADMIN,
}


def parse_vote_type(value: Any) -> VoteType:
    try:
        return VoteType(value)
    except ValueError:
        raise InvalidInput(f"vote_type must be one of {[v.value for v in VoteType]}")


class ReviewLedger:
    """Owns Review and ReviewVote rows."""

    def __init__(self, session: Session):
        """
        Args:
            session: SQLModel/SQLAlchemy Session
        """
        self.session = session

    def cast_vote(self, review_id: str, user_id: str, vote_type: Any) -> VoteResult:
        """Record a helpful/not-helpful vote and refresh the review's counters.

        The upsert, the recount and the counter update commit together. The
        counters are always recounted from the ledger, never incremented.

        Raises:
            InvalidInput: unknown vote type, review or user.
        """
        vote_type = parse_vote_type(vote_type)
        review = self.session.get(Review, review_id)
        if not review:
            raise InvalidInput(f"Review {review_id} does not exist")
        if not self.session.get(User, user_id):
            raise InvalidInput(f"User {user_id} does not exist")

        self._upsert_vote(review_id, user_id, vote_type)

        helpful, total = self._count_votes(review_id)
        review.helpful_votes = helpful
        review.total_votes = total
        review.updated_at = utcnow()
        self.session.add(review)
        self.session.commit()

        log.info(f"Vote {vote_type.value} by {user_id} on review {review_id}: {helpful}/{total} helpful")
        return VoteResult(
            review_id=review_id,
            user_id=user_id,
            vote_type=vote_type,
            helpful_votes=helpful,
            total_votes=total,
        )

    def _upsert_vote(self, review_id: str, user_id: str, vote_type: VoteType) -> None:
        dialect = self.session.get_bind().dialect.name
        insert = UPSERT_INSERTS.get(dialect)
        now = utcnow()
        if insert is not None:
            # A concurrent first vote lands on the unique key and is overwritten
            stmt = insert(ReviewVote).values(
                review_id=review_id,
                user_id=user_id,
                vote_type=vote_type,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["review_id", "user_id"],
                set_={"vote_type": stmt.excluded.vote_type, "updated_at": now},
            )
            self.session.execute(stmt)
            return

        vote = self._find_vote(review_id, user_id)
        if vote is None:
            vote = ReviewVote(review_id=review_id, user_id=user_id, vote_type=vote_type)
        else:
            vote.vote_type = vote_type
            vote.updated_at = now
        self.session.add(vote)
        self.session.flush()

    def _find_vote(self, review_id: str, user_id: str) -> Optional[ReviewVote]:
        stmt = select(ReviewVote).where(
            ReviewVote.review_id == review_id,
            ReviewVote.user_id == user_id,
        )
        return self.session.exec(stmt).first()

    def _count_votes(self, review_id: str):
        total = self.session.exec(
            select(func.count(ReviewVote.id)).where(ReviewVote.review_id == review_id)
        ).one()
        helpful = self.session.exec(
            select(func.count(ReviewVote.id)).where(
                ReviewVote.review_id == review_id,
                ReviewVote.vote_type == VoteType.HELPFUL,
            )
        ).one()
        return int(helpful), int(total)

    def create_review(
        self,
        tool_id: str,
        user_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        review_type: Optional[Any] = None,
        overall_score: Optional[float] = None,
        value_score: Optional[float] = None,
        usage_score: Optional[float] = None,
        integration_score: Optional[float] = None,
    ) -> Review:
        """Create a review.

        Args:
            review_type: defaults from the author's role; a type the author
                does not hold is downgraded to community
            overall_score: defaults to the rounded mean of the sub-scores

        Raises:
            InvalidInput: score out of range or unknown review type.
            NotFound: unknown tool or user.
        """
        scores = {
            "overall_score": overall_score,
            "value_score": value_score,
            "usage_score": usage_score,
            "integration_score": integration_score,
        }
        for name, value in scores.items():
            if value is not None and not MIN_REVIEW_SCORE <= value <= MAX_REVIEW_SCORE:
                raise InvalidInput(f"{name} must be between {MIN_REVIEW_SCORE:g} and {MAX_REVIEW_SCORE:g}")

        if review_type is not None:
            try:
                review_type = ReviewType(review_type)
            except ValueError:
                raise InvalidInput(f"type must be one of {[t.value for t in ReviewType]}")

        if not self.session.get(Tool, tool_id):
            raise NotFound(f"Tool {tool_id} not found")
        author = self.session.get(User, user_id)
        if not author:
            raise NotFound(f"User {user_id} not found")

        if review_type is None:
            review_type = ROLE_REVIEW_TYPES.get(author.role, ReviewType.COMMUNITY)
            if author.is_verified_tester and review_type == ReviewType.COMMUNITY:
                review_type = ReviewType.VERIFIED_TESTER
        elif review_type == ReviewType.ADMIN and author.role not in (UserRole.ADMIN, UserRole.SUPER_ADMIN):
            review_type = ReviewType.COMMUNITY
        elif review_type == ReviewType.VERIFIED_TESTER and not (
            author.is_verified_tester or author.role == UserRole.VERIFIED_TESTER
        ):
            review_type = ReviewType.COMMUNITY

        if scores["overall_score"] is None:
            sub_scores = [v for k, v in scores.items() if k != "overall_score" and v is not None]
            if sub_scores:
                scores["overall_score"] = float(round_half_up(sum(sub_scores) / len(sub_scores)))

        review = Review(
            tool_id=tool_id,
            user_id=user_id,
            type=review_type,
            title=title,
            content=content,
            **scores,
        )
        self.session.add(review)
        self.session.commit()
        self.session.refresh(review)

        log.info(f"Review {review.id} created by {user_id} for tool {tool_id}")
        return review

    def get_review(self, review_id: str) -> Review:
        review = self.session.get(Review, review_id)
        if not review:
            raise NotFound(f"Review {review_id} not found")
        return review

    def list_tool_reviews(
        self,
        tool_id: str,
        sort: str = "newest",
        limit: int = 50,
        offset: int = 0,
    ) -> List[Review]:
        """List a tool's reviews.

        Args:
            sort: newest, helpful or score
        """
        if sort not in REVIEW_SORTS:
            raise InvalidInput(f"sort must be one of {sorted(REVIEW_SORTS)}")
        if not self.session.get(Tool, tool_id):
            raise NotFound(f"Tool {tool_id} not found")

        stmt = (
            select(Review)
            .where(Review.tool_id == tool_id)
            .order_by(*REVIEW_SORTS[sort])
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(stmt).all())

    def list_user_reviews(self, user_id: str) -> List[Review]:
        stmt = select(Review).where(Review.user_id == user_id).order_by(col(Review.created_at).desc())
        return list(self.session.exec(stmt).all())

    def toggle_bookmark(self, review_id: str, user_id: str) -> bool:
        """Add or remove `user_id` from the review's bookmarks.

        Returns:
            True if the review is bookmarked afterwards
        """
        review = self.get_review(review_id)
        bookmarked_by = list(review.bookmarked_by or [])
        if user_id in bookmarked_by:
            bookmarked_by.remove(user_id)
            bookmarked = False
        else:
            bookmarked_by.append(user_id)
            bookmarked = True

        # Reassign so the JSON column is marked dirty
        review.bookmarked_by = bookmarked_by
        review.updated_at = utcnow()
        self.session.add(review)
        self.session.commit()
        return bookmarked

    def list_bookmarks(self, user_id: str) -> List[Review]:
        # Text prefilter on the serialized JSON list, exact membership in Python
        needle = json.dumps(user_id)
        stmt = (
            select(Review)
            .where(cast(Review.bookmarked_by, String).contains(needle, autoescape=True))
            .order_by(col(Review.created_at).desc())
        )
        return [r for r in self.session.exec(stmt).all() if user_id in (r.bookmarked_by or [])]


def review_to_dict(review: Review) -> Dict[str, Any]:
    data = review.model_dump(mode="json")
    data["bookmark_count"] = len(review.bookmarked_by or [])
    data.pop("bookmarked_by", None)
    return data

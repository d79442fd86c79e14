"""Community review API: reviews, helpful votes and bookmarks."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlmodel import Session

from services.config import config
from services.db.models import User
from services.reviews.ledger import ReviewLedger, review_to_dict
from web.dependencies import client_key, get_db_session, limiter, require_auth

router = APIRouter(prefix="/api/community/reviews", tags=["reviews"])
logger = logging.getLogger(__name__)


class ReviewCreateRequest(BaseModel):
    """Create-review request body."""
    tool_id: str
    title: Optional[str] = Field(default=None, max_length=256)
    content: Optional[str] = None
    type: Optional[str] = None  # community / verified_tester / admin; defaults from role
    overall_score: Optional[float] = None
    value_score: Optional[float] = None
    usage_score: Optional[float] = None
    integration_score: Optional[float] = None


class VoteRequest(BaseModel):
    """Helpful-vote request body. vote_type is validated by the ledger."""
    review_id: str
    vote_type: str


@router.post("", status_code=201)
async def create_review(
    body: ReviewCreateRequest,
    user: User = Depends(require_auth),
    session: Session = Depends(get_db_session),
):
    review = ReviewLedger(session).create_review(
        tool_id=body.tool_id,
        user_id=user.id,
        title=body.title,
        content=body.content,
        review_type=body.type,
        overall_score=body.overall_score,
        value_score=body.value_score,
        usage_score=body.usage_score,
        integration_score=body.integration_score,
    )
    return {"success": True, "review": review_to_dict(review)}


@router.get("")
async def list_reviews(
    tool_id: str,
    sort: str = "newest",
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_db_session),
):
    reviews = ReviewLedger(session).list_tool_reviews(tool_id, sort=sort, limit=limit, offset=offset)
    results = [review_to_dict(r) for r in reviews]
    return {"results": results, "count": len(results)}


@router.post("/vote")
@limiter.limit(config.VOTE_RATE_LIMIT, key_func=client_key)
async def vote_review(
    request: Request,
    body: VoteRequest,
    user: User = Depends(require_auth),
    session: Session = Depends(get_db_session),
):
    """Cast or change the current user's helpful vote on a review."""
    result = ReviewLedger(session).cast_vote(body.review_id, user.id, body.vote_type)
    return {
        "success": True,
        "helpful_votes": result.helpful_votes,
        "total_votes": result.total_votes,
        "message": "Vote recorded successfully",
    }


@router.get("/bookmarks")
async def list_bookmarks(
    user: User = Depends(require_auth),
    session: Session = Depends(get_db_session),
):
    bookmarks = ReviewLedger(session).list_bookmarks(user.id)
    return {"success": True, "bookmarks": [review_to_dict(r) for r in bookmarks]}


@router.get("/{review_id}")
async def get_review(review_id: str, session: Session = Depends(get_db_session)):
    return review_to_dict(ReviewLedger(session).get_review(review_id))


@router.post("/{review_id}/bookmark")
async def toggle_bookmark(
    review_id: str,
    user: User = Depends(require_auth),
    session: Session = Depends(get_db_session),
):
    bookmarked = ReviewLedger(session).toggle_bookmark(review_id, user.id)
    return {"success": True, "bookmarked": bookmarked}

"""Trust score API."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session

from services.errors import InvalidInput
from services.notification.engine import NotificationEngine
from services.reviews.trust_score import TrustScoreEngine
from web.dependencies import get_db_session, get_notification_engine

router = APIRouter(prefix="/api/community/trust-score", tags=["trust-score"])


class TrustScoreRequest(BaseModel):
    user_id: str


def _calculate(user_id: str, session: Session, background_tasks: BackgroundTasks, notifier: NotificationEngine):
    result = TrustScoreEngine(session).calculate_trust_score(user_id)
    background_tasks.add_task(notifier.publish_trust_score, result)
    return result.model_dump(mode="json")


@router.get("")
async def trust_score(
    background_tasks: BackgroundTasks,
    user_id: str = Query(..., min_length=1),
    action: str = "get",
    session: Session = Depends(get_db_session),
    notifier: NotificationEngine = Depends(get_notification_engine),
):
    """Read the stored score (`action=get`) or recompute it (`action=calculate`)."""
    if action == "calculate":
        return _calculate(user_id, session, background_tasks, notifier)
    if action == "get":
        return TrustScoreEngine(session).get_trust_score(user_id).model_dump(mode="json")
    raise InvalidInput("Invalid action")


@router.post("")
async def calculate_trust_score(
    body: TrustScoreRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_db_session),
    notifier: NotificationEngine = Depends(get_notification_engine),
):
    return _calculate(body.user_id, session, background_tasks, notifier)


@router.get("/top-users")
async def top_users(
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_db_session),
):
    users = TrustScoreEngine(session).get_top_trusted_users(limit)
    return [u.model_dump(mode="json") for u in users]

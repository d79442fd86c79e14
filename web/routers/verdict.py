"""Tool verdict API."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session

from services.errors import InvalidInput
from services.notification.engine import NotificationEngine
from services.reviews.verdict import VerdictAggregator
from web.dependencies import get_db_session, get_notification_engine

router = APIRouter(prefix="/api/community/verdict", tags=["verdict"])


class VerdictRequest(BaseModel):
    tool_id: str


def _calculate(tool_id: str, session: Session, background_tasks: BackgroundTasks, notifier: NotificationEngine):
    result = VerdictAggregator(session).calculate_tool_verdict(tool_id)
    background_tasks.add_task(notifier.publish_verdict, result)
    return result.model_dump(mode="json")


@router.get("")
async def tool_verdict(
    background_tasks: BackgroundTasks,
    tool_id: str = Query(..., min_length=1),
    action: str = "get",
    session: Session = Depends(get_db_session),
    notifier: NotificationEngine = Depends(get_notification_engine),
):
    """Read the stored verdict (`action=get`) or recompute it (`action=calculate`)."""
    if action == "calculate":
        return _calculate(tool_id, session, background_tasks, notifier)
    if action == "get":
        return VerdictAggregator(session).get_tool_verdict(tool_id).model_dump(mode="json")
    raise InvalidInput("Invalid action")


@router.post("")
async def calculate_tool_verdict(
    body: VerdictRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_db_session),
    notifier: NotificationEngine = Depends(get_notification_engine),
):
    return _calculate(body.tool_id, session, background_tasks, notifier)


@router.get("/all")
async def all_verdicts(session: Session = Depends(get_db_session)):
    verdicts = VerdictAggregator(session).get_all_tool_verdicts()
    return [v.model_dump(mode="json") for v in verdicts]

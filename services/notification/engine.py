import logging
from typing import Optional

from services.config import config
from services.db.connection import session_scope
from services.db.models import SendQueue, SendQueueStatus
from services.errors import StorageFailure
from services.reviews.schemas import TrustScoreResult, VerdictResult

log = logging.getLogger(__name__)

# SendQueue scopes
SCOPE_TRUST_SCORE = "trust_score_update"
SCOPE_VERDICT = "verdict_update"


class NotificationEngine:
    """
    Enqueues score-change notifications into SendQueue for the delivery worker.

    Publishing is fire-and-forget: a failed enqueue is logged and dropped, it
    never reaches the caller that computed the score.

    Usage:
        engine = NotificationEngine()
        engine.publish_verdict(result)
    """

    def __init__(self, session_factory=session_scope, enabled: Optional[bool] = None):
        """
        Args:
            session_factory: context manager yielding a Session
            enabled: defaults to config.NOTIFICATIONS_ENABLED
        """
        self.session_factory = session_factory
        self.enabled = config.NOTIFICATIONS_ENABLED if enabled is None else enabled

    def publish_trust_score(self, result: TrustScoreResult) -> bool:
        payload = {
            "user_id": result.user_id,
            "score": result.score,
            "badge": result.badge,
        }
        return self._enqueue(SCOPE_TRUST_SCORE, payload, user_id=result.user_id, ref_id=result.user_id)

    def publish_verdict(self, result: VerdictResult) -> bool:
        payload = {
            "tool_id": result.tool_id,
            "verdict": result.verdict.value if result.verdict else None,
            "confidence": result.confidence,
            "status": result.status,
        }
        # Broadcast topic: no single recipient
        return self._enqueue(SCOPE_VERDICT, payload, user_id=None, ref_id=result.tool_id)

    def _enqueue(self, scope: str, payload: dict, user_id: Optional[str], ref_id: str) -> bool:
        if not self.enabled:
            return False
        try:
            with self.session_factory() as session:
                session.add(SendQueue(
                    user_id=user_id,
                    scope=scope,
                    payload=payload,
                    status=SendQueueStatus.PENDING,
                    ref_id=ref_id,
                ))
        except StorageFailure as e:
            log.warning(f"⚠️ Failed to enqueue {scope} notification for {ref_id}: {e}")
            return False
        log.debug(f"Enqueued {scope} notification for {ref_id}")
        return True

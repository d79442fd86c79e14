import logging
from typing import Iterator, Optional
from fastapi import Depends, Header, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlmodel import Session

from services.config import config
from services.db.connection import session_scope
from services.db.models import User
from services.notification.engine import NotificationEngine
from services.user_service import UserService

logger = logging.getLogger(__name__)

# Header set by the identity provider's proxy once the caller is authenticated
USER_ID_HEADER = "X-User-Id"


# --- Rate Limiting ---
limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)


# --- Database ---
def get_db_session() -> Iterator[Session]:
    """FastAPI dependency: one transactional session per request."""
    with session_scope() as session:
        yield session


# --- Notifications ---
notification_engine = NotificationEngine()


def get_notification_engine() -> NotificationEngine:
    return notification_engine


# --- Auth Dependency ---
def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    x_user_name: Optional[str] = Header(default=None, alias="X-User-Name"),
    x_user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
    session: Session = Depends(get_db_session),
) -> Optional[User]:
    """Current user from the identity headers, created on first sight.

    The id is treated as opaque and already validated upstream.
    """
    if not x_user_id or not x_user_id.strip():
        return None
    return UserService(session).ensure_user(x_user_id.strip(), name=x_user_name, email=x_user_email)


def require_auth(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def client_key(request: Request) -> str:
    """Rate limit key: the authenticated user when known, else the address."""
    return request.headers.get(USER_ID_HEADER) or get_remote_address(request)

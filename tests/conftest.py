"""Shared fixtures: in-memory database, row factories and an API client."""

import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlmodel import Session

# Add project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from services.db.connection import get_engine, session_scope
from services.db.init import init_db
from services.db.models import Review, ReviewType, Tool, User, UserRole

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


@pytest.fixture
def engine():
    engine = get_engine(":memory:")
    init_db(engine=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    def _make(user_id, role=UserRole.USER, trust_score=0, is_verified_tester=False, **kwargs):
        user = User(
            id=user_id,
            name=kwargs.pop("name", user_id.title()),
            role=role,
            trust_score=trust_score,
            is_verified_tester=is_verified_tester,
            **kwargs,
        )
        session.add(user)
        session.commit()
        return user
    return _make


@pytest.fixture
def make_tool(session):
    def _make(slug, **kwargs):
        tool = Tool(name=kwargs.pop("name", slug.title()), slug=slug, **kwargs)
        session.add(tool)
        session.commit()
        return tool
    return _make


@pytest.fixture
def make_review(session):
    def _make(tool, user, overall_score=None, review_type=ReviewType.COMMUNITY, created_at=FIXED_NOW, **kwargs):
        review = Review(
            tool_id=tool.id,
            user_id=user.id,
            type=review_type,
            overall_score=overall_score,
            created_at=created_at,
            **kwargs,
        )
        session.add(review)
        session.commit()
        return review
    return _make


@pytest.fixture
def client(engine):
    from fastapi.testclient import TestClient

    from services.notification.engine import NotificationEngine
    from web.dependencies import get_db_session, get_notification_engine
    from web_app import app

    @contextmanager
    def test_scope():
        with session_scope(engine) as session:
            yield session

    def override_db_session():
        with test_scope() as session:
            yield session

    notifier = NotificationEngine(session_factory=test_scope, enabled=True)
    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_notification_engine] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

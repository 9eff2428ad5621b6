"""Pytest configuration: in-memory database, authenticated API client and fakes"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dancehub.auth import get_current_user
from dancehub.database import Base, get_db
from dancehub.domain.onboarding.router import get_stripe_service
from dancehub.main import app
from dancehub.models import Community
from dancehub.shared.notifications import RecordingNotifier

from .fakes import COMMUNITY_ID, COMMUNITY_SLUG, OWNER, FakeStripeConnect


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def community(db_session):
    community = Community(id=COMMUNITY_ID, slug=COMMUNITY_SLUG, name="Salsa Club", created_by=OWNER.id)
    db_session.add(community)
    db_session.commit()
    return community


@pytest.fixture
def fake_stripe():
    return FakeStripeConnect()


@pytest.fixture
def current_user():
    """Mutable holder so a test can switch the signed-in user"""
    return {"user": OWNER}


@pytest.fixture
def api_client(db_session, fake_stripe, current_user):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    app.dependency_overrides[get_stripe_service] = lambda: fake_stripe
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

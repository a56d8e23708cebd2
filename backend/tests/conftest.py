# backend/tests/conftest.py
"""
Pytest configuration for the SkillSwap backend.

Every test gets its own SQLite file database under ``tmp_path``. A file
(rather than ``:memory:``) lets the concurrency tests open one connection
per worker thread against the same data.
"""

import os
import sys

# Set test configuration BEFORE any skillswap imports
os.environ.setdefault("CI", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from itertools import count
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from skillswap.api.dependencies import get_db
from skillswap.core.config import settings
from skillswap.database import Base, build_engine, build_sessionmaker
from skillswap.main import app
from skillswap.models.offer import Offer
from skillswap.models.user import Skill, User
from skillswap.schemas.offer import OfferCreate
from skillswap.services.booking_workflow import BookingWorkflow
from skillswap.services.notification_service import NotificationService
from tests.utils.builders import RecordingSink, slot_at

_user_seq = count(1)


@pytest.fixture(scope="function")
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'skillswap_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """
    Create a new database session for each test.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make(full_name: str = "", status: str = "active") -> User:
        n = next(_user_seq)
        user = User(
            email=f"user{n}@example.com",
            full_name=full_name or f"User {n}",
            status=status,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def tutor(make_user) -> User:
    return make_user("Tina Tutor")


@pytest.fixture
def student(make_user) -> User:
    return make_user("Sam Student")


@pytest.fixture
def student_2(make_user) -> User:
    return make_user("Sasha Student")


@pytest.fixture
def offered_skill(db: Session, tutor: User) -> Skill:
    skill = Skill(user_id=tutor.id, name="Guitar", skill_type="offered")
    db.add(skill)
    db.commit()
    return skill


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def notification_service(db: Session, sink: RecordingSink) -> NotificationService:
    return NotificationService(db, sink)


@pytest.fixture
def workflow(db: Session, notification_service: NotificationService) -> BookingWorkflow:
    return BookingWorkflow(db, notification_service=notification_service)


@pytest.fixture
def make_offer(workflow: BookingWorkflow, tutor: User, offered_skill: Skill) -> Callable[..., Offer]:
    def _make(
        is_group: bool = False,
        capacity: int = 1,
        slots=None,
        title: str = "Beginner guitar",
        location_type: str = "online",
        location=None,
    ) -> Offer:
        payload = OfferCreate(
            skill_id=offered_skill.id,
            title=title,
            notes="Bring a guitar",
            location_type=location_type,
            location=location,
            is_group=is_group,
            capacity=capacity,
            slots=slots if slots is not None else [slot_at()],
        )
        return workflow.create_offer(tutor.id, payload)

    return _make


@pytest.fixture
def group_policy(monkeypatch):
    """Switch the full-slot auto-decline policy for one test."""

    def _set(enabled: bool) -> None:
        monkeypatch.setattr(settings, "decline_pending_on_full_slot", enabled)

    return _set


@pytest.fixture
def client(db: Session):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # Don't use context manager - create directly
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()

"""Shared fixtures: in-memory database, fixed clock, recording collaborators."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from challenge_service.core.config import Base
from challenge_service.core.exceptions import UnavailableError
from challenge_service.models import UserAuth, UserRole, ChallengeType
from challenge_service.schemas import ChallengeCreate, DailyTaskCreate
from challenge_service.services.challenge_engine import ChallengeEngine
from challenge_service.services.fasting_client import FastingSessionClient
from challenge_service.services.identity import DirectoryIdentityProvider
from challenge_service.services.side_effects import SideEffectDispatcher


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, year: int, month: int, day: int, hour: int = 9, minute: int = 0) -> None:
        self.now = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingFastingClient(FastingSessionClient):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def activate(self, user_id, fasting_type):
        self.calls.append((user_id, fasting_type))
        if self.fail:
            raise UnavailableError("fasting service down")
        return {"acknowledged": True}


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def fasting_client():
    return RecordingFastingClient()


@pytest.fixture
def engine(clock, fasting_client):
    return ChallengeEngine(
        identity=DirectoryIdentityProvider("User"),
        dispatcher=SideEffectDispatcher(fasting_client),
        clock=clock,
    )


@pytest.fixture
def make_user(db):
    def _make_user(username=None, role=UserRole.user, email=None):
        user = UserAuth(
            id=uuid.uuid4(),
            username=username,
            email=email or f"{username or uuid.uuid4().hex[:8]}@example.com",
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin", role=UserRole.admin)


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def make_challenge(db, engine, admin):
    def _make_challenge(creator=None, **overrides):
        data = {
            "name": "7-Day Streak",
            "type": ChallengeType.streak,
            "goal": 5,
            "duration": 7,
            "start_date": "2024-01-01",
        }
        data.update(overrides)
        return engine.create_challenge(db, ChallengeCreate(**data), creator or admin)
    return _make_challenge


@pytest.fixture
def make_task(db, engine, admin):
    def _make_task(challenge, creator=None, **overrides):
        # Day 3 is the default clock's day
        data = {"title": "Morning walk", "task_type": "exercise", "points": 10, "day_of_challenge": 3}
        if "task_date" in overrides and "day_of_challenge" not in overrides:
            data["day_of_challenge"] = None
        data.update(overrides)
        return engine.create_task(db, challenge.id, DailyTaskCreate(**data), creator or admin)
    return _make_task

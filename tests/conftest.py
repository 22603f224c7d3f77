"""
Shared fixtures.

Settings are read at import time, so the environment is prepared here
before anything from habittracker is imported.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("STREAK_GAP_POLICY", "ignore")

import pytest
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habittracker.identity import IdentityProvider, UserSession
from habittracker.models import Base, Habit
from habittracker.store import HabitStore


@pytest.fixture
def db_session():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
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
def store(db_session):
    return HabitStore(db_session)


@pytest.fixture
def identity(db_session):
    return IdentityProvider(db_session)


@pytest.fixture
def user(identity) -> UserSession:
    return identity.sign_up("ada@example.com", "secret123")


@pytest.fixture
def other_user(identity) -> UserSession:
    return identity.sign_up("grace@example.com", "secret456")


@pytest.fixture
def created_at():
    return datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def habit_factory(db_session):
    """Insert habit rows directly, bypassing the services"""
    def make_habit(user_id, **overrides):
        fields = dict(
            name="Read",
            streak=0,
            missed_days_allowed=0,
            num_days_record=0,
            notes="",
            last_performed=datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        habit = Habit(user_id=user_id, **fields)
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit
    return make_habit

"""Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database. The API client shares the
test's session, so rows added in a test are visible to the endpoints and
vice versa.
"""

import os
from datetime import datetime, timedelta

# Keep the application engine off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from triforce.database import get_db
from triforce.main import app
from triforce.models import (
    Activity,
    ActivityMetrics,
    ActivityRecord,
    AthleteProfile,
    Base,
    FitnessMetric,
    SportType,
    User,
)
from triforce.services.auth_service import create_access_token


@pytest.fixture
def db_session():
    """In-memory database session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def user(db_session):
    """A persisted athlete."""
    athlete = User(email="athlete@example.com", name="Test Athlete")
    db_session.add(athlete)
    db_session.commit()
    return athlete


@pytest.fixture
def other_user(db_session):
    athlete = User(email="other@example.com", name="Other Athlete")
    db_session.add(athlete)
    db_session.commit()
    return athlete


@pytest.fixture
def make_activity(db_session, user):
    """Factory adding an activity for ``user`` (or another owner)."""

    def _make(
        sport_type=SportType.BIKE,
        days_ago=1,
        moving_time=3600,
        owner=None,
        peak_20min=None,
        **fields,
    ):
        fields.setdefault("name", f"{sport_type.value.title()} session")
        activity = Activity(
            user_id=(owner or user).id,
            sport_type=sport_type,
            start_date=datetime.utcnow() - timedelta(days=days_ago),
            moving_time=moving_time,
            **fields,
        )
        db_session.add(activity)
        db_session.flush()
        if peak_20min is not None:
            db_session.add(ActivityMetrics(activity_id=activity.id, peak_20min=peak_20min))
        db_session.commit()
        return activity

    return _make


@pytest.fixture
def add_samples(db_session):
    """Factory adding 1 Hz samples to an activity from dicts."""

    def _add(activity, samples):
        for offset, sample in enumerate(samples):
            db_session.add(ActivityRecord(activity_id=activity.id, timestamp=offset, **sample))
        db_session.commit()

    return _add


@pytest.fixture
def set_profile(db_session, user):
    """Factory storing thresholds on the user's athlete profile."""

    def _set(**thresholds):
        profile = AthleteProfile(user_id=user.id, **thresholds)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _set


@pytest.fixture
def add_fitness_metric(db_session, user):
    """Factory adding a daily PMC row."""

    def _add(day, ctl, atl, daily_tss=0.0):
        metric = FitnessMetric(
            user_id=user.id,
            date=day,
            daily_tss=daily_tss,
            ctl=ctl,
            atl=atl,
            tsb=ctl - atl,
        )
        db_session.add(metric)
        db_session.commit()
        return metric

    return _add


@pytest.fixture
def client(db_session):
    """API client using the test database."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user):
    """Bearer token header for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}

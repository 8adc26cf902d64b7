"""
Pytest configuration and shared fixtures.
"""
import os

# Point settings at SQLite and keep cron jobs off (must be before any auction_scheduler imports).
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auction_scheduler.db.base import Base
from auction_scheduler.db.session import get_db
from auction_scheduler.models.daily_auction import DailyAuction  # noqa: F401  (registers the table)
from auction_scheduler.services.auctions.heartbeat import reset_job_heartbeats

DAY = date(2026, 3, 14)
PREVIOUS_DAY = date(2026, 3, 13)
NOW = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)
MASTER_ID = "master-001"


@pytest.fixture
def engine():
    """Fresh in-memory database per test; StaticPool so every session sees the same connection."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    """TestClient with get_db overridden; lifespan (cron jobs) is not started."""
    from auction_scheduler.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def _clear_heartbeats():
    reset_job_heartbeats()
    yield
    reset_job_heartbeats()

# backend/tests/conftest.py
"""
Pytest configuration for the studio booking core.

Every test gets a fresh in-memory SQLite database (StaticPool, so worker
threads started by ``asyncio.to_thread`` see the same connection). Tests that
need real concurrent connections use the file-backed ``file_session_factory``.
"""

import os

# Set testing mode BEFORE any application imports
os.environ["is_testing"] = "true"
os.environ["database_url"] = "sqlite://"
os.environ["auto_create_tables"] = "false"
os.environ["stripe_webhook_secret"] = "whsec_test_secret"
os.environ["stripe_secret_key"] = ""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studio_booking.core.policy import BookingPolicy, SettingsPilotCityPolicy
from studio_booking.database import Base
import studio_booking.models  # noqa: F401  (registers every table)

from tests.utils.booking_fixtures import (
    STUDIO_TZ_NAME,
    Catalog,
    FakeGateway,
    local_at,
    new_id,
    seed_catalog,
)


def _make_engine(url: str, **kwargs):
    engine = create_engine(url, connect_args={"check_same_thread": False}, **kwargs)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine():
    engine = _make_engine("sqlite://", poolclass=StaticPool)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """Session bound to the per-test in-memory database."""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Session factory over a file database; each session gets its own connection."""
    engine = _make_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def unreachable_db(tmp_path) -> Session:
    """Session bound to a SQLite file whose directory does not exist, so every query fails."""
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'booking.db'}")
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def policy() -> BookingPolicy:
    """Non-pilot defaults: 12% fee, 10 minute locks."""
    return BookingPolicy(
        default_timezone=STUDIO_TZ_NAME,
        pilot_cities=SettingsPilotCityPolicy(["New Orleans"], None),
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def catalog(db) -> Catalog:
    return seed_catalog(db)


@pytest.fixture
def artist_id() -> str:
    return new_id()


@pytest.fixture
def window():
    """Two hours, 14:00-16:00 studio time."""
    return local_at(14), local_at(16)

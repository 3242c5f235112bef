"""
Engine, session factory and declarative base for the booking store.

PostgreSQL in production; SQLite for tests and single-node development.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

_POSTGRES_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    # Fail fast when the pool is exhausted; callers surface 503
    "pool_timeout": 2,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _engine_kwargs(db_url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if db_url.startswith("sqlite"):
        # Sessions are handed to worker threads by asyncio.to_thread
        kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    kwargs.update(_POSTGRES_POOL_KWARGS)
    kwargs["connect_args"] = {
        "connect_timeout": 5,
        "options": "-c statement_timeout=15000",
        "application_name": "studio_booking",
    }
    return kwargs


engine: Engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; commits leftover work and always closes."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_dialect_name(session: Session) -> str:
    """Name of the SQL dialect the session talks to ("postgresql", "sqlite", ...)."""
    return session.get_bind().dialect.name


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "get_dialect_name",
]

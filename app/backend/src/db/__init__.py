"""Database session management utilities."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..core.errors import STORE_ERRORS, StoreUnavailableError
from ..models.base import Base

from .session import SessionLocal, engine as _engine

LOGGER = structlog.get_logger(__name__)


@contextmanager
def get_session() -> Iterator[Session]:
    """Yield a session; store outages surface as :class:`StoreUnavailableError`."""

    db = SessionLocal()
    try:
        yield db
    except STORE_ERRORS as exc:
        db.rollback()
        LOGGER.error("store_unavailable", error=str(exc))
        raise StoreUnavailableError() from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_session_dependency() -> Iterator[Session]:
    """FastAPI dependency wrapping :func:`get_session`."""

    with get_session() as session:
        yield session


def get_engine() -> Engine:
    return _engine


def create_schema() -> Engine:
    """Create every billing table that does not exist yet."""

    Base.metadata.create_all(bind=_engine)
    LOGGER.info("database_schema_ready", tables=sorted(Base.metadata.tables))
    return _engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back on error. Used by scripts, migrations and tests."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "create_schema",
    "get_engine",
    "get_session",
    "get_session_dependency",
    "session_scope",
]

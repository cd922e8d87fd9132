"""Health check and metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from ..db import get_session_dependency
from ..models.base import Base

router = APIRouter(tags=["health"])


@router.get("/health/live")
def liveness() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health/ready")
def readiness(session: Session = Depends(get_session_dependency)):
    """Ping the database and check that the billing tables exist.

    An unreachable store surfaces as 503 through the error handlers.
    """

    session.execute(text("SELECT 1"))
    bind = session.get_bind()
    existing = set(inspect(bind).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "missing_tables": missing},
        )
    return {"status": "ready", "database": bind.dialect.name}


@router.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics for invoice generation."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

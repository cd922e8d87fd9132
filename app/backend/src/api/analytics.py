"""Dashboard analytics endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.backend.src.db import get_session_dependency
from app.backend.src.schemas.analytics import DashboardStats
from app.backend.src.services.analytics import compute_summary

router = APIRouter(prefix="/stats", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard(session: Session = Depends(get_session_dependency)) -> DashboardStats:
    """Return the dashboard tiles for the current month."""
    return DashboardStats(**compute_summary(session))

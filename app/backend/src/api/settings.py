"""Billing settings endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.backend.src.db import get_session_dependency
from app.backend.src.models import BillingSettings
from app.backend.src.schemas.settings import BillingSettingsRead, BillingSettingsUpdate
from app.backend.src.services import billing_settings as settings_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=BillingSettingsRead)
def read_settings(
    session: Annotated[Session, Depends(get_session_dependency)],
) -> BillingSettings:
    return settings_service.get_billing_settings(session)


@router.put("", response_model=BillingSettingsRead)
def update_settings(
    payload: BillingSettingsUpdate,
    session: Annotated[Session, Depends(get_session_dependency)],
) -> BillingSettings:
    """Change fees or VAT for future generation runs."""

    return settings_service.update_billing_settings(
        session, payload.model_dump(exclude_unset=True)
    )

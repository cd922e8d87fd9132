"""Billing settings model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, Money, utcnow

SETTINGS_ROW_ID = 1


class BillingSettings(Base):
    """Process-wide billing configuration, stored as a single row."""

    __tablename__ = "billing_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    uid: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    standard_fee: Mapped[Decimal] = mapped_column(Money, nullable=False)
    cancellation_fee: Mapped[Decimal] = mapped_column(Money, nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


__all__ = ["BillingSettings", "SETTINGS_ROW_ID"]

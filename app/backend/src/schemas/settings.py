"""Billing settings schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class BillingSettingsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    company_name: str
    address: str
    uid: str
    standard_fee: Decimal
    cancellation_fee: Decimal
    vat_rate: Decimal
    updated_at: datetime


class BillingSettingsUpdate(BaseModel):
    company_name: str | None = None
    address: str | None = None
    uid: str | None = None
    standard_fee: Decimal | None = None
    cancellation_fee: Decimal | None = None
    vat_rate: Decimal | None = None

"""Job API schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_wall_clock(value: datetime | None) -> datetime | None:
    """Jobs are scheduled in local wall-clock time; drop any UTC offset."""

    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


class JobRead(BaseModel):
    """Schema for job records exposed via the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_number: int
    scheduled_at: datetime
    company_id: int
    customer_type: str
    customer_name: str | None
    service_address: str
    trade: str
    activity: str
    status: str
    report_text: str | None
    referral_fee: Decimal | None
    is_billed: bool
    created_at: datetime


class JobCreate(BaseModel):
    scheduled_at: datetime
    company_id: int
    customer_type: Literal["property_manager", "private_customer"] = "private_customer"
    customer_name: str | None = None
    service_address: str = Field(min_length=1)
    trade: str = ""
    activity: str = ""
    status: str = "open"
    report_text: str | None = None
    referral_fee: Decimal | None = Field(default=None, ge=0, decimal_places=2)

    @field_validator("scheduled_at")
    @classmethod
    def strip_utc_offset(cls, value: datetime | None) -> datetime | None:
        return _as_wall_clock(value)


class JobUpdate(BaseModel):
    scheduled_at: datetime | None = None
    customer_type: Literal["property_manager", "private_customer"] | None = None
    customer_name: str | None = None
    service_address: str | None = None
    trade: str | None = None
    activity: str | None = None
    status: str | None = None
    report_text: str | None = None
    referral_fee: Decimal | None = Field(default=None, ge=0, decimal_places=2)

    @field_validator("scheduled_at")
    @classmethod
    def strip_utc_offset(cls, value: datetime | None) -> datetime | None:
        return _as_wall_clock(value)

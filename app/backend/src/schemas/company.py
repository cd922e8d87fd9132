"""Partner company schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr


class CompanyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_name: str
    contact_name: str
    address: str
    phone: str
    email: str
    trades: list[str]
    is_active: bool
    notes: str | None
    created_at: datetime


class CompanyCreate(BaseModel):
    company_name: str
    contact_name: str = ""
    address: str = ""
    phone: str = ""
    email: EmailStr
    trades: list[str] = []
    is_active: bool = True
    notes: str | None = None

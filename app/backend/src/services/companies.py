"""Service layer functions for partner companies."""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.backend.src.core.errors import NotFoundError, ValidationError
from app.backend.src.models import Company

LOGGER = structlog.get_logger(__name__)


def list_companies(session: Session) -> list[Company]:
    return list(session.execute(select(Company).order_by(Company.id.desc())).scalars())


def get_company(session: Session, company_id: int) -> Company:
    company = session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def create_company(session: Session, values: dict) -> Company:
    """Register a partner company."""

    name = (values.get("company_name") or "").strip()
    if not name:
        raise ValidationError("Company name is required", field="company_name")

    payload = dict(values)
    payload["company_name"] = name
    payload["trades"] = [trade.strip() for trade in payload.get("trades") or [] if trade.strip()]
    company = Company(**payload)
    session.add(company)
    session.commit()
    session.refresh(company)
    LOGGER.info("company_created", company_id=company.id, company_name=company.company_name)
    return company


__all__ = ["create_company", "get_company", "list_companies"]

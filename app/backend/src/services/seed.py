"""Utilities for seeding development data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.backend.src.models import Company, Job
from app.backend.src.services.billing_settings import get_billing_settings

DEFAULT_COMPANY_NAME = "Installateur Huber GmbH"
DEFAULT_COMPANY_EMAIL = "office@huber-installateur.example.com"
DEMO_JOBS = [
    ("Rohrbruch Küche", "Installateur", "done"),
    ("Heizung entlüften", "Installateur", "done"),
    ("Termin abgesagt", "Installateur", "cancelled"),
    ("Wasserhahn tauschen", "Installateur", "open"),
]


@dataclass
class SeedResult:
    """Information about the seeded company and jobs."""

    company: Company
    company_created: bool
    jobs_created: int


def seed_development_data(
    session: Session,
    *,
    company_name: str = DEFAULT_COMPANY_NAME,
    company_email: str = DEFAULT_COMPANY_EMAIL,
    month_start: datetime | None = None,
) -> SeedResult:
    """Ensure billing settings, a demo partner company and a month of jobs exist.

    Jobs are only added when the company has none yet, so re-running the seed
    does not inflate the ledger.
    """

    get_billing_settings(session)

    company = session.execute(
        select(Company).where(Company.company_name == company_name)
    ).scalar_one_or_none()
    company_created = False
    if company is None:
        company = Company(
            company_name=company_name,
            contact_name="Franz Huber",
            address="Hauptstraße 1, 1010 Wien",
            phone="+43 1 234567",
            email=company_email,
            trades=["Installateur"],
        )
        session.add(company)
        session.flush()
        company_created = True

    jobs_created = 0
    has_jobs = session.execute(
        select(func.count(Job.id)).where(Job.company_id == company.id)
    ).scalar_one()
    if not has_jobs:
        today = datetime.now()
        start = month_start or datetime(today.year, today.month, 1, 9, 0)
        next_number = (session.execute(select(func.max(Job.job_number))).scalar() or 0) + 1
        for offset, (activity, trade, status) in enumerate(DEMO_JOBS):
            session.add(
                Job(
                    job_number=next_number + offset,
                    scheduled_at=start + timedelta(days=offset * 3),
                    company_id=company.id,
                    customer_type="private_customer",
                    customer_name="Maria Muster",
                    service_address=f"Musterweg {offset + 1}, 1020 Wien",
                    trade=trade,
                    activity=activity,
                    status=status,
                )
            )
            jobs_created += 1
        session.flush()

    return SeedResult(company=company, company_created=company_created, jobs_created=jobs_created)

"""Job ledger queries and writes consumed by the invoice engine."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.backend.src.core.errors import NotFoundError, ValidationError
from app.backend.src.models import Company, InvoiceItem, Job
from app.backend.src.models.job import (
    JOB_STATUS_CANCELLED,
    JOB_STATUS_DONE,
    JOB_STATUS_OPEN,
)

LOGGER = structlog.get_logger(__name__)

_MONTH_YEAR_PATTERN = re.compile(r"^(?P<year>\d{4})-(?P<month>0[1-9]|1[0-2])$")

_STATUS_SYNONYMS = {
    "open": JOB_STATUS_OPEN,
    "offen": JOB_STATUS_OPEN,
    "done": JOB_STATUS_DONE,
    "erledigt": JOB_STATUS_DONE,
    "cancelled": JOB_STATUS_CANCELLED,
    "canceled": JOB_STATUS_CANCELLED,
    "storniert": JOB_STATUS_CANCELLED,
}

UPDATABLE_JOB_FIELDS = {
    "scheduled_at",
    "customer_type",
    "customer_name",
    "service_address",
    "trade",
    "activity",
    "status",
    "report_text",
    "referral_fee",
}
# Columns that are NOT NULL in the jobs table.
REQUIRED_JOB_FIELDS = {
    "scheduled_at",
    "customer_type",
    "service_address",
    "trade",
    "activity",
    "status",
}


@dataclass(frozen=True, slots=True)
class BillingPeriod:
    """A calendar month addressed by its ``YYYY-MM`` key."""

    year: int
    month: int

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1)

    @property
    def next_start(self) -> datetime:
        if self.month == 12:
            return datetime(self.year + 1, 1, 1)
        return datetime(self.year, self.month + 1, 1)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.next_start


def parse_month_year(value: str | None, *, field: str = "monthYear") -> BillingPeriod:
    """Parse a strict ``YYYY-MM`` key, raising :class:`ValidationError` otherwise."""

    match = _MONTH_YEAR_PATTERN.match((value or "").strip())
    if match is None:
        raise ValidationError(
            "monthYear must use the format YYYY-MM (e.g. 2024-03)",
            field=field,
        )
    return BillingPeriod(year=int(match.group("year")), month=int(match.group("month")))


def canonical_status(value: str | None) -> str:
    """Return the canonical job status for a raw label."""

    status = status_or_none(value)
    if status is None:
        raise ValidationError(f"Unknown job status '{value}'", field="status")
    return status


def status_or_none(value: str | None) -> str | None:
    """Like :func:`canonical_status`, but ``None`` for labels that are not job statuses."""

    return _STATUS_SYNONYMS.get((value or "").strip().lower())


def canonical_statuses(values: Iterable[str]) -> frozenset[str]:
    """Canonicalize a configured status list. Unknown labels are dropped and logged."""

    statuses = set()
    for value in values:
        status = status_or_none(value)
        if status is None:
            LOGGER.warning("unknown_status_ignored", label=value)
            continue
        statuses.add(status)
    return frozenset(statuses)


def status_labels(statuses: Iterable[str]) -> list[str]:
    """Expand canonical statuses to every stored label that maps to them."""

    wanted = set(statuses)
    return sorted(label for label, status in _STATUS_SYNONYMS.items() if status in wanted)


def status_in(statuses: Iterable[str]):
    """SQL filter matching jobs whose stored label maps to one of ``statuses``."""

    return func.lower(func.trim(Job.status)).in_(status_labels(statuses))


def jobs_in_month(
    session: Session, period: BillingPeriod, statuses: Iterable[str]
) -> list[Job]:
    """Return jobs scheduled within ``period`` whose status is in ``statuses``.

    The month is half-open on the next month's first instant, so a job at
    23:59:59.999 on the last day still belongs to ``period``.
    """

    wanted = frozenset(statuses)
    if not status_labels(wanted):
        return []

    stmt = (
        select(Job)
        .where(
            Job.scheduled_at >= period.start,
            Job.scheduled_at < period.next_start,
            status_in(wanted),
        )
        .order_by(Job.scheduled_at.asc(), Job.id.asc())
    )
    return list(session.execute(stmt).scalars())


def billed_job_ids(session: Session, job_ids: Iterable[int] | None = None) -> set[int]:
    """Return ids of jobs that already appear on any invoice, across all months."""

    stmt = select(InvoiceItem.job_id)
    if job_ids is not None:
        ids = list(job_ids)
        if not ids:
            return set()
        stmt = stmt.where(InvoiceItem.job_id.in_(ids))
    return set(session.execute(stmt).scalars())


def filter_unbilled(jobs: Iterable[Job], billed: set[int]) -> list[Job]:
    return [job for job in jobs if job.id not in billed]


def list_jobs(session: Session) -> list[Job]:
    """Return all jobs, newest first, with company and billing state loaded."""

    return list(
        session.execute(
            select(Job)
            .options(selectinload(Job.company), selectinload(Job.invoice_item))
            .order_by(Job.id.desc())
        ).scalars()
    )


def get_job(session: Session, job_id: int) -> Job:
    job = session.get(
        Job, job_id, options=[selectinload(Job.company), selectinload(Job.invoice_item)]
    )
    if job is None:
        raise NotFoundError("Job not found")
    return job


def _next_job_number(session: Session) -> int:
    current = session.execute(select(func.max(Job.job_number))).scalar_one_or_none()
    return (current or 0) + 1


def create_job(session: Session, values: dict) -> Job:
    """Record a new job, assigning the next sequential job number."""

    company = session.get(Company, values["company_id"])
    if company is None:
        raise NotFoundError("Company not found")

    payload = dict(values)
    payload["status"] = canonical_status(payload.get("status") or JOB_STATUS_OPEN)
    job = Job(job_number=_next_job_number(session), **payload)
    session.add(job)
    session.commit()
    session.refresh(job)
    LOGGER.info(
        "job_created",
        job_id=job.id,
        job_number=job.job_number,
        company_id=job.company_id,
        status=job.status,
    )
    return get_job(session, job.id)


def update_job(session: Session, job_id: int, values: dict) -> Job:
    """Apply a partial update. Job number and company stay fixed."""

    job = get_job(session, job_id)
    changes: dict[str, object] = {}
    for field, value in values.items():
        if field not in UPDATABLE_JOB_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be changed", field=field)
        if value is None and field in REQUIRED_JOB_FIELDS:
            raise ValidationError(f"Field '{field}' must not be empty", field=field)
        if field == "status":
            value = canonical_status(value)
        if field == "referral_fee" and value is not None and Decimal(value) < 0:
            raise ValidationError("Referral fee must not be negative", field=field)
        changes[field] = value

    for field, value in changes.items():
        setattr(job, field, value)
    session.commit()
    LOGGER.info("job_updated", job_id=job.id, fields=sorted(values))
    return get_job(session, job.id)


__all__ = [
    "BillingPeriod",
    "billed_job_ids",
    "canonical_status",
    "canonical_statuses",
    "status_in",
    "status_labels",
    "status_or_none",
    "create_job",
    "filter_unbilled",
    "get_job",
    "jobs_in_month",
    "list_jobs",
    "parse_month_year",
    "update_job",
]

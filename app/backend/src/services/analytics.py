"""Dashboard analytics service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.backend.src.models import Invoice, Job
from app.backend.src.models.invoice import INVOICE_STATUS_UNPAID
from app.backend.src.models.job import JOB_STATUS_DONE, JOB_STATUS_OPEN
from app.backend.src.services.job_ledger import BillingPeriod, status_in


def compute_summary(session: Session, now: datetime | None = None) -> dict[str, int | Decimal]:
    """Return the dashboard tiles for the month containing ``now``.

    Revenue sums the gross totals of invoices billed for the current month,
    not invoices created during it.
    """

    now = now or datetime.now()
    period = BillingPeriod(year=now.year, month=now.month)

    open_jobs = session.execute(
        select(func.count(Job.id)).where(status_in({JOB_STATUS_OPEN}))
    ).scalar_one()

    done_jobs_month = session.execute(
        select(func.count(Job.id)).where(
            Job.scheduled_at >= period.start,
            Job.scheduled_at < period.next_start,
            status_in({JOB_STATUS_DONE}),
        )
    ).scalar_one()

    unpaid_invoices = session.execute(
        select(func.count(Invoice.id)).where(Invoice.status == INVOICE_STATUS_UNPAID)
    ).scalar_one()

    revenue = sum(
        session.execute(
            select(Invoice.total_amount).where(Invoice.month_year == period.key)
        ).scalars(),
        Decimal("0.00"),
    )

    return {
        "open_jobs": int(open_jobs or 0),
        "done_jobs_month": int(done_jobs_month or 0),
        "unpaid_invoices": int(unpaid_invoices or 0),
        "monthly_revenue": revenue,
    }

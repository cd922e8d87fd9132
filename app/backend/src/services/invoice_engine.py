"""Invoice generation engine.

Turns the job ledger for one calendar month into one commission invoice per
partner company. A run may be repeated any number of times for the same
month: already billed jobs are skipped, duplicate invoices for a
``(company, month)`` pair are merged into the newest one, and totals are
rebuilt from the current line items every time.
"""

from __future__ import annotations

import secrets
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.backend.src.core.errors import STORE_ERRORS, ConflictError, StoreUnavailableError
from app.backend.src.models import Company, Invoice, InvoiceItem, Job
from app.backend.src.models.invoice import INVOICE_STATUS_UNPAID
from app.backend.src.services.billing_settings import BillingPolicy
from app.backend.src.services.calculations import InvoiceTotals, compute_totals, round2
from app.backend.src.services.job_ledger import (
    billed_job_ids,
    filter_unbilled,
    jobs_in_month,
    parse_month_year,
)
from app.backend.src.services.metrics import (
    invoice_duplicates_merged_total,
    invoice_generation_runs_total,
    invoice_items_billed_total,
)

LOGGER = structlog.get_logger(__name__)

# A conflicting company unit is rolled back and tried once more.
UNIT_ATTEMPTS = 2

INVOICE_NUMBER_ATTEMPTS = 5


@dataclass(frozen=True, slots=True)
class CompanyOutcome:
    """What one company's reconcile step changed."""

    company_id: int
    invoice_id: int | None
    created: bool
    items_added: int
    duplicates_merged: int
    total_changed: bool

    @property
    def touched(self) -> bool:
        return bool(
            self.created or self.items_added or self.duplicates_merged or self.total_changed
        )


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Summary of a ``generate_invoices`` run."""

    month_year: str
    invoice_count: int
    jobs_billed_count: int
    duplicates_merged: int
    conflicts: int
    message: str


# --------------------------------------------------------------------------
# Duplicate merge
# --------------------------------------------------------------------------
def invoices_for_period(session: Session, company_id: int, month_year: str) -> list[Invoice]:
    """Return every invoice of ``company_id`` for ``month_year``, newest first."""

    stmt = (
        select(Invoice)
        .where(Invoice.company_id == company_id, Invoice.month_year == month_year)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
    )
    return list(session.execute(stmt).scalars())


def merge_duplicate_invoices(
    session: Session, company_id: int, month_year: str
) -> tuple[Invoice | None, int]:
    """Fold all invoices of a ``(company, month)`` pair into the newest one.

    Items of each older duplicate are re-pointed to the master and the emptied
    duplicate is deleted. No item is created or destroyed. Returns the master
    (``None`` when no invoice exists yet) and the number of duplicates removed.
    """

    invoices = invoices_for_period(session, company_id, month_year)
    if not invoices:
        return None, 0

    master, duplicates = invoices[0], invoices[1:]
    for duplicate in duplicates:
        session.execute(
            update(InvoiceItem)
            .where(InvoiceItem.invoice_id == duplicate.id)
            .values(invoice_id=master.id)
        )
        # Bulk delete: the ORM cascade on Invoice.items must not touch the
        # items that were just moved to the master.
        session.execute(delete(Invoice).where(Invoice.id == duplicate.id))

    if duplicates:
        session.expire(master, ["items"])
        invoice_duplicates_merged_total.inc(len(duplicates))
        LOGGER.warning(
            "duplicate_invoices_merged",
            company_id=company_id,
            month_year=month_year,
            master_invoice_id=master.id,
            merged_invoice_ids=[duplicate.id for duplicate in duplicates],
        )
    return master, len(duplicates)


# --------------------------------------------------------------------------
# Get-or-create
# --------------------------------------------------------------------------
def build_invoice_number(month_year: str, company_id: int) -> str:
    """Return ``YYYYMM-<company>-<token>``, a display id rather than a key."""

    return f"{month_year.replace('-', '')}-{company_id}-{secrets.token_hex(2).upper()}"


def _allocate_invoice_number(session: Session, month_year: str, company_id: int) -> str:
    for _ in range(INVOICE_NUMBER_ATTEMPTS):
        candidate = build_invoice_number(month_year, company_id)
        taken = session.execute(
            select(Invoice.id).where(Invoice.invoice_number == candidate)
        ).first()
        if taken is None:
            return candidate
    raise ConflictError("Could not allocate a unique invoice number")


def get_or_create_invoice(
    session: Session, company_id: int, month_year: str, master: Invoice | None = None
) -> tuple[Invoice, bool]:
    """Return ``master`` or a new unpaid, zero-total invoice for the period."""

    if master is not None:
        return master, False

    invoice = Invoice(
        invoice_number=_allocate_invoice_number(session, month_year, company_id),
        month_year=month_year,
        company_id=company_id,
        status=INVOICE_STATUS_UNPAID,
        total_amount=Decimal("0.00"),
    )
    session.add(invoice)
    session.flush()
    LOGGER.info(
        "invoice_created",
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        company_id=company_id,
        month_year=month_year,
    )
    return invoice, True


# --------------------------------------------------------------------------
# Append and recompute
# --------------------------------------------------------------------------
def append_items(
    session: Session, invoice: Invoice, jobs: list[Job], policy: BillingPolicy
) -> list[InvoiceItem]:
    """Add one line per job that is still unbilled, priced by ``policy``."""

    if not jobs:
        return []

    already_billed = billed_job_ids(session, [job.id for job in jobs])
    if already_billed:
        LOGGER.info(
            "invoice_items_already_billed",
            invoice_id=invoice.id,
            job_ids=sorted(already_billed),
        )

    items = [
        InvoiceItem(invoice_id=invoice.id, job_id=job.id, amount=policy.fee_for(job))
        for job in jobs
        if job.id not in already_billed
    ]
    session.add_all(items)
    session.flush()
    session.expire(invoice, ["items"])
    return items


def recalculate_invoice_totals(
    session: Session, invoice: Invoice, vat_rate: Decimal
) -> InvoiceTotals:
    """Rebuild the stored gross of ``invoice`` from its current items."""

    amounts = session.execute(
        select(InvoiceItem.amount).where(InvoiceItem.invoice_id == invoice.id)
    ).scalars()
    totals = compute_totals(amounts, vat_rate)
    invoice.total_amount = totals.gross
    session.flush()
    return totals


# --------------------------------------------------------------------------
# Orchestration
# --------------------------------------------------------------------------
def _lock_company(session: Session, company_id: int) -> None:
    """Serialize concurrent runs for the same company (row lock, no-op on SQLite)."""

    session.execute(
        select(Company.id).where(Company.id == company_id).with_for_update()
    ).scalar_one_or_none()


def _companies_with_invoices(session: Session, month_year: str) -> set[int]:
    stmt = select(Invoice.company_id).where(Invoice.month_year == month_year).distinct()
    return set(session.execute(stmt).scalars())


def reconcile_company(
    session: Session,
    company_id: int,
    month_year: str,
    jobs: list[Job],
    policy: BillingPolicy,
) -> CompanyOutcome:
    """Merge, get-or-create, append and recompute for one company and month."""

    _lock_company(session, company_id)
    master, merged = merge_duplicate_invoices(session, company_id, month_year)

    created = False
    added: list[InvoiceItem] = []
    if jobs:
        master, created = get_or_create_invoice(session, company_id, month_year, master)
        added = append_items(session, master, jobs, policy)
        if created and not added:
            session.delete(master)
            session.flush()
            master, created = None, False

    if master is None:
        return CompanyOutcome(company_id, None, False, 0, merged, False)

    previous_total = master.total_amount
    totals = recalculate_invoice_totals(session, master, policy.vat_rate)
    total_changed = previous_total is None or round2(previous_total) != totals.gross
    LOGGER.info(
        "invoice_reconciled",
        invoice_id=master.id,
        company_id=company_id,
        month_year=month_year,
        items_added=len(added),
        duplicates_merged=merged,
        net=str(totals.net),
        vat=str(totals.vat),
        gross=str(totals.gross),
    )
    return CompanyOutcome(
        company_id=company_id,
        invoice_id=master.id,
        created=created,
        items_added=len(added),
        duplicates_merged=merged,
        total_changed=total_changed,
    )


def generate_invoices(
    session: Session, month_year: str, policy: BillingPolicy
) -> GenerationResult:
    """Create or update the invoices of every partner company for one month.

    Each company is committed as its own unit. A store conflict in one unit
    (for example a concurrent run that billed the same job first) rolls that
    unit back and retries it once against the fresh ledger. Units that still
    conflict are counted in ``conflicts`` and the run reports itself as
    incomplete. Store outages abort the run with :class:`StoreUnavailableError`.
    """

    period = parse_month_year(month_year)
    try:
        selected = jobs_in_month(session, period, policy.billable_statuses)
        billed = billed_job_ids(session)
        invoiced_companies = _companies_with_invoices(session, period.key)
    except STORE_ERRORS as exc:
        session.rollback()
        invoice_generation_runs_total.labels(outcome="store_unavailable").inc()
        LOGGER.error("invoice_generation_store_unavailable", month_year=period.key, error=str(exc))
        raise StoreUnavailableError() from exc

    jobs_by_company: dict[int, list[Job]] = defaultdict(list)
    for job in filter_unbilled(selected, billed):
        jobs_by_company[job.company_id].append(job)

    company_ids = sorted({job.company_id for job in selected} | invoiced_companies)
    if not company_ids:
        invoice_generation_runs_total.labels(outcome="empty").inc()
        LOGGER.info("invoice_generation_empty", month_year=period.key)
        return GenerationResult(
            month_year=period.key,
            invoice_count=0,
            jobs_billed_count=0,
            duplicates_merged=0,
            conflicts=0,
            message=f"No billable jobs found for {period.key}",
        )

    outcomes: list[CompanyOutcome] = []
    conflicts = 0
    for company_id in company_ids:
        company_jobs = jobs_by_company.get(company_id, [])
        for attempt in range(1, UNIT_ATTEMPTS + 1):
            try:
                outcome = reconcile_company(session, company_id, period.key, company_jobs, policy)
                session.commit()
            except (IntegrityError, ConflictError) as exc:
                session.rollback()
                LOGGER.warning(
                    "invoice_generation_conflict",
                    company_id=company_id,
                    month_year=period.key,
                    attempt=attempt,
                    error=str(exc),
                )
                continue
            except STORE_ERRORS as exc:
                session.rollback()
                invoice_generation_runs_total.labels(outcome="store_unavailable").inc()
                LOGGER.error(
                    "invoice_generation_store_unavailable",
                    company_id=company_id,
                    month_year=period.key,
                    error=str(exc),
                )
                raise StoreUnavailableError() from exc
            outcomes.append(outcome)
            break
        else:
            conflicts += 1

    touched = [outcome for outcome in outcomes if outcome.touched]
    jobs_billed = sum(outcome.items_added for outcome in outcomes)
    merged = sum(outcome.duplicates_merged for outcome in outcomes)
    invoice_items_billed_total.inc(jobs_billed)
    invoice_generation_runs_total.labels(
        outcome="incomplete" if conflicts else "completed"
    ).inc()

    if conflicts:
        message = (
            f"Invoices for {period.key} are incomplete: {conflicts} companies could "
            "not be reconciled; run generation again"
        )
    elif touched:
        message = f"Updated/created {len(touched)} invoices for {period.key}"
    else:
        message = f"No new jobs to invoice for {period.key}; existing invoices are up to date"

    LOGGER.info(
        "invoice_generation_completed",
        month_year=period.key,
        invoice_count=len(touched),
        jobs_billed=jobs_billed,
        duplicates_merged=merged,
        conflicts=conflicts,
    )
    return GenerationResult(
        month_year=period.key,
        invoice_count=len(touched),
        jobs_billed_count=jobs_billed,
        duplicates_merged=merged,
        conflicts=conflicts,
        message=message,
    )


__all__ = [
    "CompanyOutcome",
    "GenerationResult",
    "append_items",
    "build_invoice_number",
    "generate_invoices",
    "get_or_create_invoice",
    "invoices_for_period",
    "merge_duplicate_invoices",
    "recalculate_invoice_totals",
    "reconcile_company",
]

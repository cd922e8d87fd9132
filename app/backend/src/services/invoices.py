"""Service layer functions for reading invoices and changing their state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.backend.src.core.errors import NotFoundError
from app.backend.src.models import Company, Invoice, InvoiceItem, Job
from app.backend.src.models.invoice import INVOICE_STATUS_PAID
from app.backend.src.services.calculations import InvoiceTotals, compute_totals

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class InvoiceLine:
    item: InvoiceItem
    job: Job


@dataclass(frozen=True, slots=True)
class InvoiceAggregate:
    """An invoice with its company, lines and derived totals.

    This is the shape handed to the PDF renderer and the detail view.
    """

    invoice: Invoice
    company: Company
    lines: list[InvoiceLine]
    totals: InvoiceTotals


def _invoice_query():
    return select(Invoice).options(
        selectinload(Invoice.company),
        selectinload(Invoice.items).selectinload(InvoiceItem.job),
    )


def _get_invoice_or_404(session: Session, invoice_id: int) -> Invoice:
    invoice = session.execute(
        _invoice_query().where(Invoice.id == invoice_id)
    ).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def build_aggregate(invoice: Invoice, vat_rate: Decimal) -> InvoiceAggregate:
    """Assemble the aggregate, deriving net and VAT from the current items."""

    lines = [InvoiceLine(item=item, job=item.job) for item in invoice.items]
    totals = compute_totals((line.item.amount for line in lines), vat_rate)
    return InvoiceAggregate(
        invoice=invoice, company=invoice.company, lines=lines, totals=totals
    )


def list_invoices(session: Session) -> list[Invoice]:
    """Return all invoices, newest first, with company and items loaded."""

    stmt = _invoice_query().order_by(Invoice.created_at.desc(), Invoice.id.desc())
    return list(session.execute(stmt).scalars())


def get_invoice(session: Session, invoice_id: int, vat_rate: Decimal) -> InvoiceAggregate:
    return build_aggregate(_get_invoice_or_404(session, invoice_id), vat_rate)


def mark_invoice_paid(
    session: Session, invoice_id: int, vat_rate: Decimal
) -> InvoiceAggregate:
    """Move an invoice to ``paid`` and stamp ``paid_at``."""

    invoice = _get_invoice_or_404(session, invoice_id)
    invoice.status = INVOICE_STATUS_PAID
    invoice.paid_at = datetime.now(timezone.utc)
    session.commit()
    LOGGER.info("invoice_marked_paid", invoice_id=invoice.id, invoice_number=invoice.invoice_number)
    return get_invoice(session, invoice_id, vat_rate)


def mark_invoice_sent(session: Session, invoice_id: int) -> Invoice:
    """Stamp ``sent_at`` after a successful delivery. Payment status is untouched."""

    invoice = _get_invoice_or_404(session, invoice_id)
    invoice.sent_at = datetime.now(timezone.utc)
    session.commit()
    LOGGER.info("invoice_marked_sent", invoice_id=invoice.id)
    return invoice


__all__ = [
    "InvoiceAggregate",
    "InvoiceLine",
    "build_aggregate",
    "get_invoice",
    "list_invoices",
    "mark_invoice_paid",
    "mark_invoice_sent",
]

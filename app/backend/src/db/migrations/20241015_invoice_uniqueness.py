"""Repair legacy double-billing and add store-level uniqueness for invoices.

Databases filled by the earliest generation logic can hold several invoices
for one company and month, and occasionally two lines for the same job. This
migration folds them together and then adds unique indexes so that the store
rejects new violations.
"""

from __future__ import annotations

from sqlalchemy import func, inspect, select, text

from app.backend.src.db import get_engine, session_scope
from app.backend.src.models import Invoice, InvoiceItem
from app.backend.src.services.billing_settings import load_billing_policy
from app.backend.src.services.invoice_engine import (
    merge_duplicate_invoices,
    recalculate_invoice_totals,
)

ITEM_INDEX = "uq_invoice_items_job_id"
PERIOD_INDEX = "uq_invoices_company_month"


def _drop_duplicate_items(session) -> set[int]:
    """Keep the oldest line per job, returning the invoices that lost a line."""

    duplicated_jobs = session.execute(
        select(InvoiceItem.job_id)
        .group_by(InvoiceItem.job_id)
        .having(func.count(InvoiceItem.id) > 1)
    ).scalars().all()

    affected: set[int] = set()
    for job_id in duplicated_jobs:
        items = session.execute(
            select(InvoiceItem).where(InvoiceItem.job_id == job_id).order_by(InvoiceItem.id)
        ).scalars().all()
        for extra in items[1:]:
            affected.add(extra.invoice_id)
            session.delete(extra)
    session.flush()
    return affected


def _existing_indexes(connection, table: str) -> set[str]:
    return {index["name"] for index in inspect(connection).get_indexes(table)}


def upgrade() -> None:
    """Apply the migration."""

    with session_scope() as session:
        policy = load_billing_policy(session)
        touched = _drop_duplicate_items(session)

        pairs = session.execute(
            select(Invoice.company_id, Invoice.month_year)
            .group_by(Invoice.company_id, Invoice.month_year)
            .having(func.count(Invoice.id) > 1)
        ).all()
        for company_id, month_year in pairs:
            master, _ = merge_duplicate_invoices(session, company_id, month_year)
            if master is not None:
                touched.add(master.id)

        for invoice_id in touched:
            invoice = session.get(Invoice, invoice_id)
            if invoice is not None:
                recalculate_invoice_totals(session, invoice, policy.vat_rate)

    engine = get_engine()
    with engine.begin() as connection:
        if ITEM_INDEX not in _existing_indexes(connection, "invoice_items"):
            connection.execute(
                text(f"CREATE UNIQUE INDEX {ITEM_INDEX} ON invoice_items (job_id)")
            )
        if PERIOD_INDEX not in _existing_indexes(connection, "invoices"):
            connection.execute(
                text(
                    f"CREATE UNIQUE INDEX {PERIOD_INDEX} "
                    "ON invoices (company_id, month_year)"
                )
            )


def downgrade() -> None:
    """Revert the migration. Merged invoices are not split again."""

    engine = get_engine()
    with engine.begin() as connection:
        connection.execute(text(f"DROP INDEX IF EXISTS {PERIOD_INDEX}"))
        connection.execute(text(f"DROP INDEX IF EXISTS {ITEM_INDEX}"))


__all__ = ["downgrade", "upgrade"]

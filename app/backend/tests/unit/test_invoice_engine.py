"""Tests for monthly invoice generation and reconciliation."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_billing.db")

from app.backend.src.core.config import Settings
from app.backend.src.core.errors import StoreUnavailableError, ValidationError
from app.backend.src.db import get_engine, session_scope
from app.backend.src.models import Company, Invoice, InvoiceItem, Job
from app.backend.src.models.base import Base
from app.backend.src.services import billing_settings, invoice_engine
from app.backend.src.services.billing_settings import BillingPolicy
from app.backend.src.services.calculations import round2
from app.backend.src.services.invoice_engine import (
    build_invoice_number,
    generate_invoices,
    merge_duplicate_invoices,
)

MONTH = "2024-03"
POLICY = BillingPolicy(
    standard_fee=Decimal("49.00"),
    cancellation_fee=Decimal("14.90"),
    vat_rate=Decimal("0.20"),
)


@pytest.fixture(autouse=True)
def setup_database() -> None:
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


class LedgerBuilder:
    """Small helper creating companies and jobs with unique job numbers."""

    def __init__(self, session) -> None:
        self.session = session
        self.next_number = 1

    def company(self, name: str) -> Company:
        company = Company(company_name=name, email=f"{name.lower()}@example.com")
        self.session.add(company)
        self.session.flush()
        return company

    def job(
        self,
        company: Company,
        day: int = 5,
        status: str = "done",
        referral_fee: Decimal | None = None,
        month: int = 3,
    ) -> Job:
        job = Job(
            job_number=self.next_number,
            scheduled_at=datetime(2024, month, day, 10, 0),
            company_id=company.id,
            service_address=f"Musterweg {self.next_number}, 1020 Wien",
            status=status,
            referral_fee=referral_fee,
        )
        self.next_number += 1
        self.session.add(job)
        self.session.flush()
        return job


def _invoices(session, company_id: int) -> list[Invoice]:
    return list(
        session.execute(
            select(Invoice).where(Invoice.company_id == company_id, Invoice.month_year == MONTH)
        ).scalars()
    )


def _item_amounts(session, invoice_id: int) -> dict[int, Decimal]:
    rows = session.execute(
        select(InvoiceItem.job_id, InvoiceItem.amount).where(InvoiceItem.invoice_id == invoice_id)
    ).all()
    return {job_id: amount for job_id, amount in rows}


def test_generates_one_invoice_per_company() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        plumber = ledger.company("Huber")
        electrician = ledger.company("Berger")
        done = ledger.job(plumber, day=3)
        cancelled = ledger.job(plumber, day=4, status="cancelled")
        ledger.job(plumber, day=2, month=4)
        other = ledger.job(electrician, day=9)
        session.commit()
        plumber_id, electrician_id = plumber.id, electrician.id

        result = generate_invoices(session, MONTH, POLICY)

    assert result.invoice_count == 2
    assert result.jobs_billed_count == 3
    assert result.message == "Updated/created 2 invoices for 2024-03"

    with session_scope() as session:
        (plumber_invoice,) = _invoices(session, plumber_id)
        (electrician_invoice,) = _invoices(session, electrician_id)

        assert _item_amounts(session, plumber_invoice.id) == {
            done.id: Decimal("49.00"),
            cancelled.id: Decimal("14.90"),
        }
        assert plumber_invoice.total_amount == Decimal("76.68")
        assert plumber_invoice.status == "unpaid"
        assert plumber_invoice.invoice_number.startswith(f"202403-{plumber_id}-")
        assert _item_amounts(session, electrician_invoice.id) == {other.id: Decimal("49.00")}
        assert electrician_invoice.total_amount == Decimal("58.80")


def test_rerun_is_idempotent() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        ledger.job(company)
        ledger.job(company, status="cancelled")
        session.commit()
        company_id = company.id

        generate_invoices(session, MONTH, POLICY)

    with session_scope() as session:
        (before,) = _invoices(session, company_id)
        snapshot = (before.id, before.total_amount, _item_amounts(session, before.id))

    with session_scope() as session:
        result = generate_invoices(session, MONTH, POLICY)

    assert result.invoice_count == 0
    assert result.jobs_billed_count == 0
    assert result.message == (
        "No new jobs to invoice for 2024-03; existing invoices are up to date"
    )

    with session_scope() as session:
        (after,) = _invoices(session, company_id)
        assert (after.id, after.total_amount, _item_amounts(session, after.id)) == snapshot


def test_new_job_is_appended_to_existing_invoice() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        first = ledger.job(company, day=2)
        session.commit()
        generate_invoices(session, MONTH, POLICY)

        second = ledger.job(company, day=20)
        session.commit()
        company_id = company.id

        result = generate_invoices(session, MONTH, POLICY)

    assert result.invoice_count == 1
    assert result.jobs_billed_count == 1

    with session_scope() as session:
        (invoice,) = _invoices(session, company_id)
        assert set(_item_amounts(session, invoice.id)) == {first.id, second.id}
        assert invoice.total_amount == Decimal("117.60")


def test_job_billed_in_another_month_is_not_billed_again() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        moved = ledger.job(company, day=10)
        february = Invoice(
            invoice_number="202402-1-AAAA",
            month_year="2024-02",
            company_id=company.id,
            total_amount=Decimal("58.80"),
        )
        session.add(february)
        session.flush()
        session.add(InvoiceItem(invoice_id=february.id, job_id=moved.id, amount=Decimal("49.00")))
        session.commit()
        company_id = company.id

        result = generate_invoices(session, MONTH, POLICY)

    assert result.invoice_count == 0
    assert result.jobs_billed_count == 0
    with session_scope() as session:
        assert _invoices(session, company_id) == []
        assert session.execute(select(InvoiceItem)).scalars().all() != []


def test_duplicate_invoices_are_merged_into_newest() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        job_a = ledger.job(company, day=1)
        job_b = ledger.job(company, day=2)
        job_c = ledger.job(company, day=3, referral_fee=Decimal("80.00"))

        older = Invoice(
            invoice_number="202403-1-OLD1",
            month_year=MONTH,
            company_id=company.id,
            total_amount=Decimal("117.60"),
            created_at=datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc),
        )
        newer = Invoice(
            invoice_number="202403-1-NEW1",
            month_year=MONTH,
            company_id=company.id,
            total_amount=Decimal("96.00"),
            created_at=datetime(2024, 4, 2, 8, 0, tzinfo=timezone.utc),
        )
        session.add_all([older, newer])
        session.flush()
        session.add_all(
            [
                InvoiceItem(invoice_id=older.id, job_id=job_a.id, amount=Decimal("49.00")),
                InvoiceItem(invoice_id=older.id, job_id=job_b.id, amount=Decimal("49.00")),
                InvoiceItem(invoice_id=newer.id, job_id=job_c.id, amount=Decimal("80.00")),
            ]
        )
        session.commit()
        company_id, newer_id = company.id, newer.id

        result = generate_invoices(session, MONTH, POLICY)

    assert result.duplicates_merged == 1
    assert result.invoice_count == 1
    assert result.jobs_billed_count == 0

    with session_scope() as session:
        (master,) = _invoices(session, company_id)
        amounts = _item_amounts(session, master.id)

        assert master.id == newer_id
        assert set(amounts) == {job_a.id, job_b.id, job_c.id}
        expected_gross = round2(round2(sum(amounts.values())) * Decimal("1.20"))
        assert master.total_amount == expected_gross == Decimal("213.60")


def test_merge_without_invoices_returns_none() -> None:
    with session_scope() as session:
        company = LedgerBuilder(session).company("Huber")

        assert merge_duplicate_invoices(session, company.id, MONTH) == (None, 0)


def test_referral_fee_applies_only_to_non_cancelled_jobs() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        special = ledger.job(company, referral_fee=Decimal("80.00"))
        cancelled = ledger.job(company, status="storniert", referral_fee=Decimal("80.00"))
        session.commit()
        company_id = company.id

        generate_invoices(session, MONTH, POLICY)

    with session_scope() as session:
        (invoice,) = _invoices(session, company_id)
        assert _item_amounts(session, invoice.id) == {
            special.id: Decimal("80.00"),
            cancelled.id: Decimal("14.90"),
        }


def test_billable_statuses_restrict_selection() -> None:
    policy = BillingPolicy(
        standard_fee=Decimal("49.00"),
        cancellation_fee=Decimal("14.90"),
        vat_rate=Decimal("0.20"),
        billable_statuses=frozenset({"done", "cancelled"}),
    )
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        ledger.job(company, status="open")
        session.commit()

        result = generate_invoices(session, MONTH, policy)

    assert result.invoice_count == 0
    assert result.message == "No billable jobs found for 2024-03"


def test_settings_change_keeps_billed_amounts() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        billed = ledger.job(company)
        session.commit()
        company_id = company.id
        generate_invoices(session, MONTH, POLICY)

    raised = BillingPolicy(
        standard_fee=Decimal("59.00"),
        cancellation_fee=Decimal("14.90"),
        vat_rate=Decimal("0.20"),
    )
    with session_scope() as session:
        result = generate_invoices(session, MONTH, raised)

    assert result.invoice_count == 0
    with session_scope() as session:
        (invoice,) = _invoices(session, company_id)
        assert _item_amounts(session, invoice.id) == {billed.id: Decimal("49.00")}
        assert invoice.total_amount == Decimal("58.80")


def test_stale_total_is_repaired() -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        ledger.job(company)
        session.commit()
        company_id = company.id
        generate_invoices(session, MONTH, POLICY)

    with session_scope() as session:
        (invoice,) = _invoices(session, company_id)
        invoice.total_amount = Decimal("1.00")

    with session_scope() as session:
        result = generate_invoices(session, MONTH, POLICY)

    assert result.invoice_count == 1
    assert result.jobs_billed_count == 0
    with session_scope() as session:
        (invoice,) = _invoices(session, company_id)
        assert invoice.total_amount == Decimal("58.80")


def test_empty_month_reports_nothing_billable() -> None:
    with session_scope() as session:
        result = generate_invoices(session, MONTH, POLICY)

    assert result.invoice_count == 0
    assert result.jobs_billed_count == 0
    assert result.message == "No billable jobs found for 2024-03"


def test_malformed_month_is_rejected() -> None:
    with session_scope() as session:
        with pytest.raises(ValidationError):
            generate_invoices(session, "2024-13", POLICY)


def test_invoice_number_format() -> None:
    number = build_invoice_number("2024-03", 7)

    prefix, company, token = number.split("-")
    assert prefix == "202403"
    assert company == "7"
    assert len(token) == 4 and token == token.upper()


def _ledger_with_stale_reads() -> tuple[int, int, list[int], int]:
    """Huber's first March job sits on a February invoice; Berger has one March job."""

    with session_scope() as session:
        ledger = LedgerBuilder(session)
        huber = ledger.company("Huber")
        berger = ledger.company("Berger")
        moved = ledger.job(huber, day=2)
        pending = [ledger.job(huber, day=3), ledger.job(huber, day=4)]
        other = ledger.job(berger, day=5)
        february = Invoice(
            invoice_number="202402-1-AAAA",
            month_year="2024-02",
            company_id=huber.id,
            total_amount=Decimal("58.80"),
        )
        session.add(february)
        session.flush()
        session.add(InvoiceItem(invoice_id=february.id, job_id=moved.id, amount=Decimal("49.00")))
        return huber.id, berger.id, [job.id for job in pending], other.id


def _stale_billed_reads(monkeypatch, stale_calls: int | None) -> None:
    """Let the first ``stale_calls`` billed-job reads miss every item (all reads for None)."""

    real = invoice_engine.billed_job_ids
    calls = {"count": 0}

    def billed(session, job_ids=None):
        calls["count"] += 1
        if stale_calls is None or calls["count"] <= stale_calls:
            return set()
        return real(session, job_ids)

    monkeypatch.setattr(invoice_engine, "billed_job_ids", billed)


def test_conflicting_company_is_retried(monkeypatch) -> None:
    huber_id, berger_id, pending_ids, other_id = _ledger_with_stale_reads()
    # run-wide read and Huber's first append both miss the February item
    _stale_billed_reads(monkeypatch, stale_calls=2)

    with session_scope() as session:
        result = generate_invoices(session, MONTH, POLICY)

    assert result.conflicts == 0
    assert result.invoice_count == 2
    assert result.jobs_billed_count == 3
    assert result.message == "Updated/created 2 invoices for 2024-03"
    with session_scope() as session:
        (huber_invoice,) = _invoices(session, huber_id)
        (berger_invoice,) = _invoices(session, berger_id)
        assert set(_item_amounts(session, huber_invoice.id)) == set(pending_ids)
        assert set(_item_amounts(session, berger_invoice.id)) == {other_id}
        assert huber_invoice.total_amount == Decimal("117.60")


def test_unresolved_conflict_reports_incomplete_run(monkeypatch) -> None:
    huber_id, berger_id, pending_ids, other_id = _ledger_with_stale_reads()
    _stale_billed_reads(monkeypatch, stale_calls=None)

    with session_scope() as session:
        result = generate_invoices(session, MONTH, POLICY)

    assert result.conflicts == 1
    assert result.invoice_count == 1
    assert result.message == (
        "Invoices for 2024-03 are incomplete: 1 companies could not be reconciled; "
        "run generation again"
    )
    with session_scope() as session:
        assert _invoices(session, huber_id) == []
        (berger_invoice,) = _invoices(session, berger_id)
        assert set(_item_amounts(session, berger_invoice.id)) == {other_id}
        billed = session.execute(
            select(InvoiceItem.job_id).where(InvoiceItem.job_id.in_(pending_ids))
        ).scalars()
        assert list(billed) == []


def test_store_outage_while_selecting_aborts_run(monkeypatch) -> None:
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT jobs", {}, Exception("database is locked"))

    monkeypatch.setattr(invoice_engine, "jobs_in_month", unavailable)

    with session_scope() as session:
        with pytest.raises(StoreUnavailableError):
            generate_invoices(session, MONTH, POLICY)


def test_store_outage_inside_company_unit_aborts_run(monkeypatch) -> None:
    with session_scope() as session:
        ledger = LedgerBuilder(session)
        ledger.job(ledger.company("Huber"))

    def unavailable(*args, **kwargs):
        raise OperationalError("UPDATE invoice_items", {}, Exception("connection closed"))

    monkeypatch.setattr(invoice_engine, "merge_duplicate_invoices", unavailable)

    with session_scope() as session:
        with pytest.raises(StoreUnavailableError):
            generate_invoices(session, MONTH, POLICY)

    with session_scope() as session:
        assert session.execute(select(Invoice)).scalars().all() == []


def test_unknown_configured_status_is_ignored(monkeypatch) -> None:
    monkeypatch.setattr(
        billing_settings, "get_settings", lambda: Settings(BILLABLE_STATUSES="done, Archived")
    )

    with session_scope() as session:
        ledger = LedgerBuilder(session)
        company = ledger.company("Huber")
        done = ledger.job(company, day=3)
        ledger.job(company, day=4, status="open")
        session.commit()
        company_id, done_id = company.id, done.id

        policy = billing_settings.load_billing_policy(session)
        result = generate_invoices(session, MONTH, policy)

    assert policy.billable_statuses == frozenset({"done"})
    assert result.jobs_billed_count == 1
    with session_scope() as session:
        (invoice,) = _invoices(session, company_id)
        assert set(_item_amounts(session, invoice.id)) == {done_id}

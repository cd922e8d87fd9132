"""API tests for jobs, companies, billing settings and the dashboard."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_billing.db")

from app.backend.src.db import create_schema, get_engine, session_scope
from app.backend.src.main import app
from app.backend.src.models import Company, Job
from app.backend.src.models.base import Base
from app.backend.src.services.analytics import compute_summary
from app.backend.src.services.seed import seed_development_data


@pytest.fixture(autouse=True)
def setup_database() -> None:
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def company_id(client: TestClient) -> int:
    response = client.post(
        "/api/companies",
        json={
            "company_name": "Elektro Berger",
            "contact_name": "Anna Berger",
            "email": "office@berger-elektro.example.com",
            "trades": ["Elektriker", " "],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_liveness_endpoint(client: TestClient) -> None:
    response = client.get("/api/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "live"


def test_readiness_endpoint(client: TestClient) -> None:
    response = client.get("/api/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "database": "sqlite"}


def test_readiness_reports_missing_tables(client: TestClient) -> None:
    Base.metadata.tables["billing_settings"].drop(get_engine())

    response = client.get("/api/health/ready")

    assert response.status_code == 503
    assert response.json()["missing_tables"] == ["billing_settings"]

    create_schema()
    assert client.get("/api/health/ready").status_code == 200


def test_metrics_endpoint(client: TestClient) -> None:
    response = client.get("/api/metrics")
    assert response.status_code == 200
    assert "invoice_generation_runs_total" in response.text


def test_company_lifecycle(client: TestClient, company_id: int) -> None:
    detail = client.get(f"/api/companies/{company_id}")
    assert detail.status_code == 200
    assert detail.json()["trades"] == ["Elektriker"]

    listing = client.get("/api/companies")
    assert [company["id"] for company in listing.json()] == [company_id]

    missing = client.get("/api/companies/999")
    assert missing.status_code == 404
    assert missing.json() == {"message": "Company not found"}


def test_company_name_is_required(client: TestClient) -> None:
    response = client.post(
        "/api/companies", json={"company_name": "  ", "email": "x@example.com"}
    )
    assert response.status_code == 400
    assert response.json()["field"] == "company_name"


def test_job_create_and_update(client: TestClient, company_id: int) -> None:
    created = client.post(
        "/api/jobs",
        json={
            "company_id": company_id,
            "scheduled_at": "2024-03-05T09:30:00+01:00",
            "service_address": "Musterweg 1, 1020 Wien",
            "trade": "Elektriker",
            "status": "offen",
        },
    )
    assert created.status_code == 201, created.text
    job = created.json()
    assert job["job_number"] == 1
    assert job["status"] == "open"
    assert job["is_billed"] is False
    assert job["scheduled_at"].startswith("2024-03-05T09:30:00")

    updated = client.patch(
        f"/api/jobs/{job['id']}", json={"status": "done", "referral_fee": "65.00"}
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["status"] == "done"
    assert Decimal(updated.json()["referral_fee"]) == Decimal("65.00")

    rejected = client.patch(f"/api/jobs/{job['id']}", json={"status": "archived"})
    assert rejected.status_code == 400
    assert rejected.json()["field"] == "status"

    assert client.get("/api/jobs/999").status_code == 404


def test_job_for_unknown_company_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/jobs",
        json={
            "company_id": 42,
            "scheduled_at": "2024-03-05T09:30:00",
            "service_address": "Musterweg 1",
        },
    )
    assert response.status_code == 404


def test_billed_flag_follows_generation(client: TestClient, company_id: int) -> None:
    client.post(
        "/api/jobs",
        json={
            "company_id": company_id,
            "scheduled_at": "2024-03-05T09:30:00",
            "service_address": "Musterweg 1",
            "status": "done",
        },
    )
    client.post("/api/invoices/generate", json={"monthYear": "2024-03"})

    (job,) = client.get("/api/jobs").json()
    assert job["is_billed"] is True


def test_settings_defaults_and_update(client: TestClient) -> None:
    defaults = client.get("/api/settings")
    assert defaults.status_code == 200
    body = defaults.json()
    assert Decimal(body["standard_fee"]) == Decimal("49.00")
    assert Decimal(body["cancellation_fee"]) == Decimal("14.90")
    assert Decimal(body["vat_rate"]) == Decimal("0.20")

    updated = client.put("/api/settings", json={"standard_fee": "59.00", "uid": "ATU12345678"})
    assert updated.status_code == 200, updated.text
    assert Decimal(updated.json()["standard_fee"]) == Decimal("59.00")
    assert updated.json()["uid"] == "ATU12345678"


@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"standard_fee": "0"}, "standard_fee"),
        ({"cancellation_fee": "60.00"}, "cancellation_fee"),
        ({"vat_rate": "1.5"}, "vat_rate"),
    ],
)
def test_settings_validation(client: TestClient, payload: dict, field: str) -> None:
    response = client.put("/api/settings", json=payload)

    assert response.status_code == 400
    assert response.json()["field"] == field


def test_new_fee_applies_to_next_run_only(client: TestClient, company_id: int) -> None:
    def add_job(day: int) -> None:
        client.post(
            "/api/jobs",
            json={
                "company_id": company_id,
                "scheduled_at": f"2024-03-{day:02d}T09:00:00",
                "service_address": "Musterweg 1",
                "status": "done",
            },
        )

    add_job(4)
    client.post("/api/invoices/generate", json={"monthYear": "2024-03"})
    client.put("/api/settings", json={"standard_fee": "59.00"})
    add_job(5)
    client.post("/api/invoices/generate", json={"monthYear": "2024-03"})

    (invoice,) = client.get("/api/invoices").json()
    assert sorted(Decimal(item["amount"]) for item in invoice["items"]) == [
        Decimal("49.00"),
        Decimal("59.00"),
    ]
    assert Decimal(invoice["total_amount"]) == Decimal("129.60")


def test_dashboard_stats(client: TestClient) -> None:
    now = datetime.now()
    with session_scope() as session:
        seed_development_data(session, month_start=datetime(now.year, now.month, 1, 9, 0))

    month_key = f"{now.year:04d}-{now.month:02d}"
    generated = client.post("/api/invoices/generate", json={"monthYear": month_key})
    assert generated.json()["generatedCount"] == 1

    stats = client.get("/api/stats/dashboard")

    assert stats.status_code == 200
    body = stats.json()
    assert body["open_jobs"] == 1
    assert body["done_jobs_month"] == 2
    assert body["unpaid_invoices"] == 1
    # 2 x 49.00 + 14.90 + 49.00 for the open job, plus 20 % VAT
    assert Decimal(body["monthly_revenue"]) == Decimal("194.28")


def test_seed_is_idempotent() -> None:
    with session_scope() as session:
        first = seed_development_data(session)
    with session_scope() as session:
        second = seed_development_data(session)

    assert first.company_created is True
    assert first.jobs_created == 4
    assert second.company_created is False
    assert second.jobs_created == 0


@pytest.mark.parametrize("field", ["scheduled_at", "service_address"])
def test_job_update_rejects_null_required_field(
    client: TestClient, company_id: int, field: str
) -> None:
    created = client.post(
        "/api/jobs",
        json={
            "company_id": company_id,
            "scheduled_at": "2024-03-05T09:30:00",
            "service_address": "Musterweg 1",
        },
    )
    job_id = created.json()["id"]

    response = client.patch(f"/api/jobs/{job_id}", json={field: None})

    assert response.status_code == 400
    assert response.json()["field"] == field
    assert client.get(f"/api/jobs/{job_id}").json()["service_address"] == "Musterweg 1"


def test_dashboard_counts_stored_status_labels() -> None:
    with session_scope() as session:
        company = Company(company_name="Elektro Berger", email="office@berger.example.com")
        session.add(company)
        session.flush()
        labels = [
            ("Offen", 3),
            ("open", 40),
            ("erledigt", 4),
            ("Done ", 5),
            ("done", 35),
            ("archived", 6),
        ]
        for number, (status, offset) in enumerate(labels, start=1):
            session.add(
                Job(
                    job_number=number,
                    scheduled_at=datetime(2024, 3, 1, 9) + timedelta(days=offset),
                    company_id=company.id,
                    service_address=f"Musterweg {number}",
                    status=status,
                )
            )

    with session_scope() as session:
        summary = compute_summary(session, now=datetime(2024, 3, 15))

    assert summary["open_jobs"] == 2
    assert summary["done_jobs_month"] == 2
    assert summary["unpaid_invoices"] == 0
    assert summary["monthly_revenue"] == Decimal("0.00")

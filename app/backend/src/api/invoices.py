"""Invoice related endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.backend.src.core.errors import ValidationError
from app.backend.src.models import Invoice
from app.backend.src.schemas.invoice import (
    DeliveryResponse,
    GenerateInvoicesRequest,
    GenerateInvoicesResponse,
    InvoiceDetail,
    InvoiceRead,
)
from app.backend.src.services import invoices as invoice_service
from app.backend.src.services.billing_settings import (
    BillingPolicy,
    get_billing_settings,
    load_billing_policy,
)
from app.backend.src.services.invoice_engine import generate_invoices as run_generation
from app.backend.src.services.invoices import InvoiceAggregate
from app.backend.src.services.job_ledger import parse_month_year
from app.backend.src.services.notifications import invoice_email_body, send_email
from app.backend.src.services.pdf_generation import generate_invoice_pdf
from ..db import get_session_dependency

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])

SessionDep = Annotated[Session, Depends(get_session_dependency)]


def get_billing_policy(session: SessionDep) -> BillingPolicy:
    """Load the billing policy once per request."""

    return load_billing_policy(session)


PolicyDep = Annotated[BillingPolicy, Depends(get_billing_policy)]


def _serialize_detail(aggregate: InvoiceAggregate) -> InvoiceDetail:
    header = InvoiceRead.model_validate(aggregate.invoice).model_dump()
    totals = aggregate.totals
    return InvoiceDetail.model_validate(
        {
            **header,
            "totals": {
                "net": totals.net,
                "vat": totals.vat,
                "gross": totals.gross,
                "item_count": totals.item_count,
            },
        }
    )


# --------------------------------------------------------------------------
# POST /invoices/generate
# --------------------------------------------------------------------------
@router.post("/generate", response_model=GenerateInvoicesResponse)
def generate_invoices(
    payload: GenerateInvoicesRequest,
    session: SessionDep,
) -> GenerateInvoicesResponse:
    """Create or update one invoice per partner company for ``monthYear``."""

    period = parse_month_year(payload.month_year)
    LOGGER.info("invoice_generation_requested", month_year=period.key)
    result = run_generation(session, period.key, load_billing_policy(session))
    return GenerateInvoicesResponse(
        generated_count=result.invoice_count,
        jobs_billed_count=result.jobs_billed_count,
        message=result.message,
    )


@router.get("", response_model=list[InvoiceRead])
def list_invoices(session: SessionDep) -> list[Invoice]:
    """Return all invoices, newest first."""

    return invoice_service.list_invoices(session)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: int, session: SessionDep, policy: PolicyDep) -> InvoiceDetail:
    """Return one invoice with its company, job-joined lines and totals."""

    aggregate = invoice_service.get_invoice(session, invoice_id, policy.vat_rate)
    return _serialize_detail(aggregate)


@router.post("/{invoice_id}/paid", response_model=InvoiceDetail)
def mark_invoice_paid(
    invoice_id: int, session: SessionDep, policy: PolicyDep
) -> InvoiceDetail:
    aggregate = invoice_service.mark_invoice_paid(session, invoice_id, policy.vat_rate)
    return _serialize_detail(aggregate)


@router.post("/{invoice_id}/pdf")
def download_invoice_pdf(invoice_id: int, session: SessionDep, policy: PolicyDep) -> Response:
    """Render the invoice as a PDF attachment."""

    aggregate = invoice_service.get_invoice(session, invoice_id, policy.vat_rate)
    document = generate_invoice_pdf(aggregate, get_billing_settings(session))
    LOGGER.info(
        "invoice_pdf_rendered",
        invoice_id=invoice_id,
        size=len(document.content),
    )
    return Response(
        content=document.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={document.filename}"},
    )


@router.post("/{invoice_id}/email", response_model=DeliveryResponse)
def email_invoice(invoice_id: int, session: SessionDep, policy: PolicyDep) -> DeliveryResponse:
    """Mail the invoice PDF to the company. Only a successful send sets ``sent_at``."""

    aggregate = invoice_service.get_invoice(session, invoice_id, policy.vat_rate)
    recipient = (aggregate.company.email or "").strip()
    if not recipient:
        raise ValidationError("No company email found", field="email")

    issuer = get_billing_settings(session)
    document = generate_invoice_pdf(aggregate, issuer)
    invoice = aggregate.invoice
    send_email(
        recipient,
        f"Rechnung {invoice.month_year} - {invoice.invoice_number}",
        invoice_email_body(invoice.month_year, issuer.company_name),
        attachment=document.content,
        attachment_name=document.filename,
    )
    invoice_service.mark_invoice_sent(session, invoice_id)
    return DeliveryResponse(success=True, message="Email sent successfully")

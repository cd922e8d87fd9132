"""Utilities for rendering commission invoice PDFs."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from time import perf_counter

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.backend.src.models import BillingSettings, Job
from app.backend.src.models.job import JOB_STATUS_CANCELLED
from app.backend.src.services.invoices import InvoiceAggregate
from app.backend.src.services.job_ledger import status_or_none
from app.backend.src.services.metrics import pdf_generation_seconds


@dataclass(frozen=True, slots=True)
class InvoicePdf:
    """A rendered invoice document."""

    filename: str
    content: bytes


def format_eur(value: Decimal) -> str:
    """Format an amount the Austrian way, e.g. ``1.234,50 €``."""

    text = f"{Decimal(value):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".") + " €"


def build_filename(invoice_number: str) -> str:
    return f"invoice-{invoice_number}.pdf"


def describe_line(job: Job) -> str:
    """Line label for a job; cancellations are marked whatever label they were stored with."""

    if status_or_none(job.status) == JOB_STATUS_CANCELLED:
        return f"{job.service_address} (storniert)"
    return job.service_address


def _truncate(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[: limit - 1] + "…"


def generate_invoice_pdf(aggregate: InvoiceAggregate, issuer: BillingSettings) -> InvoicePdf:
    """Lay out header, recipient, line items and the totals block.

    Pure formatting: every figure comes from ``aggregate``.
    """

    invoice = aggregate.invoice
    company = aggregate.company
    totals = aggregate.totals

    start = perf_counter()
    buffer = BytesIO()
    pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    margin = 50
    header_height = 100
    primary_color = HexColor("#0F172A")
    accent_color = HexColor("#DC2626")
    muted_text = HexColor("#64748B")
    light_panel = HexColor("#F8FAFC")
    table_header_color = HexColor("#FEE2E2")
    border_color = HexColor("#E2E8F0")
    columns = [margin + 12, margin + 70, margin + 150, width - margin - 10]

    def draw_brand_header() -> float:
        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.rect(0, height - header_height, width, header_height, fill=1, stroke=0)

        pdf_canvas.setFont("Helvetica-Bold", 18)
        pdf_canvas.setFillColor(HexColor("#FFFFFF"))
        pdf_canvas.drawString(margin, height - 50, issuer.company_name)
        pdf_canvas.setFont("Helvetica", 9)
        pdf_canvas.setFillColor(HexColor("#CBD5F5"))
        if issuer.address:
            pdf_canvas.drawString(margin, height - 66, issuer.address)
        if issuer.uid:
            pdf_canvas.drawString(margin, height - 80, f"UID: {issuer.uid}")

        pdf_canvas.setFont("Helvetica-Bold", 12)
        pdf_canvas.setFillColor(HexColor("#FFFFFF"))
        pdf_canvas.drawRightString(width - margin, height - 50, "ABRECHNUNG / INVOICE")
        pdf_canvas.setFont("Helvetica", 9)
        pdf_canvas.setFillColor(HexColor("#E2E8F0"))
        pdf_canvas.drawRightString(width - margin, height - 66, f"Nr. {invoice.invoice_number}")
        pdf_canvas.drawRightString(width - margin, height - 80, f"Zeitraum: {invoice.month_year}")

        pdf_canvas.setFillColor(primary_color)
        return height - header_height - 30

    def draw_recipient(top: float) -> float:
        card_height = 80
        card_bottom = top - card_height
        pdf_canvas.setFillColor(light_panel)
        pdf_canvas.roundRect(margin, card_bottom, width - 2 * margin, card_height, 10, fill=1, stroke=0)

        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 11)
        pdf_canvas.drawString(margin + 16, top - 22, "Empfänger / Bill To")
        pdf_canvas.setFont("Helvetica", 10)
        pdf_canvas.setFillColor(muted_text)
        pdf_canvas.drawString(margin + 16, top - 38, company.company_name)
        if company.contact_name:
            pdf_canvas.drawString(margin + 16, top - 52, company.contact_name)
        if company.address:
            pdf_canvas.drawString(margin + 16, top - 66, _truncate(company.address, 70))

        created = invoice.created_at.strftime("%d.%m.%Y") if invoice.created_at else ""
        pdf_canvas.drawRightString(width - margin - 16, top - 38, f"Datum: {created}")
        pdf_canvas.drawRightString(
            width - margin - 16, top - 52, f"Status: {invoice.status}"
        )
        pdf_canvas.setFillColor(primary_color)
        return card_bottom - 28

    def draw_table_header(top: float) -> float:
        row_height = 24
        pdf_canvas.setFillColor(table_header_color)
        pdf_canvas.roundRect(margin, top - row_height, width - 2 * margin, row_height, 6, fill=1, stroke=0)
        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 10)
        pdf_canvas.drawString(columns[0], top - 16, "Einsatz #")
        pdf_canvas.drawString(columns[1], top - 16, "Datum")
        pdf_canvas.drawString(columns[2], top - 16, "Adresse")
        pdf_canvas.drawRightString(columns[3], top - 16, "Netto")
        return top - row_height - 16

    y_position = draw_brand_header()
    y_position = draw_recipient(y_position)
    y_position = draw_table_header(y_position)

    row_height = 20
    for idx, line in enumerate(aggregate.lines):
        if y_position < 140:
            pdf_canvas.showPage()
            y_position = draw_brand_header()
            y_position = draw_table_header(y_position)

        if idx % 2 == 0:
            pdf_canvas.setFillColor(light_panel)
            pdf_canvas.rect(margin, y_position - 6, width - 2 * margin, row_height, fill=1, stroke=0)

        job = line.job
        pdf_canvas.setFillColor(primary_color)
        pdf_canvas.setFont("Helvetica", 9)
        pdf_canvas.drawString(columns[0], y_position, f"#{job.job_number}")
        pdf_canvas.drawString(columns[1], y_position, job.scheduled_at.strftime("%d.%m.%Y"))
        pdf_canvas.drawString(columns[2], y_position, _truncate(describe_line(job), 62))
        pdf_canvas.drawRightString(columns[3], y_position, format_eur(line.item.amount))
        y_position -= row_height

    pdf_canvas.setStrokeColor(border_color)
    pdf_canvas.line(margin, y_position + 4, width - margin, y_position + 4)

    labels_x = columns[3] - 110
    summary = [
        ("Summe netto", totals.net, "Helvetica", muted_text),
        ("USt.", totals.vat, "Helvetica", muted_text),
        ("Gesamt brutto", totals.gross, "Helvetica-Bold", accent_color),
    ]
    for label, amount, font, color in summary:
        y_position -= 18
        pdf_canvas.setFont(font, 10)
        pdf_canvas.setFillColor(color)
        pdf_canvas.drawRightString(labels_x, y_position, label)
        pdf_canvas.drawRightString(columns[3], y_position, format_eur(amount))

    pdf_canvas.showPage()
    pdf_canvas.save()

    pdf_generation_seconds.observe(perf_counter() - start)
    return InvoicePdf(
        filename=build_filename(invoice.invoice_number),
        content=buffer.getvalue(),
    )


__all__ = [
    "InvoicePdf",
    "build_filename",
    "describe_line",
    "format_eur",
    "generate_invoice_pdf",
]

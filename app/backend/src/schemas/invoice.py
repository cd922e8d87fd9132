"""Invoice schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .company import CompanyRead
from .line_item import InvoiceItemRead


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    month_year: str
    company_id: int
    status: str
    total_amount: Decimal
    created_at: datetime
    sent_at: datetime | None
    paid_at: datetime | None
    company: CompanyRead | None = None
    items: list[InvoiceItemRead] = []


class InvoiceTotalsRead(BaseModel):
    net: Decimal
    vat: Decimal
    gross: Decimal
    item_count: int


class InvoiceDetail(InvoiceRead):
    """Invoice header, company, job-joined lines and derived totals."""

    totals: InvoiceTotalsRead


class GenerateInvoicesRequest(BaseModel):
    """Body of ``POST /invoices/generate``; checked by the engine, not here."""

    model_config = ConfigDict(populate_by_name=True)

    month_year: str | None = Field(default=None, alias="monthYear")


class GenerateInvoicesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generated_count: int = Field(alias="generatedCount")
    jobs_billed_count: int = Field(alias="jobsBilledCount")
    message: str


class DeliveryResponse(BaseModel):
    success: bool
    message: str

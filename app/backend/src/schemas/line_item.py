"""Invoice line item schema."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class JobSummary(BaseModel):
    """The job fields shown next to a billed line."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_number: int
    scheduled_at: datetime
    service_address: str
    trade: str
    status: str


class InvoiceItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    job_id: int
    amount: Decimal
    job: JobSummary | None = None

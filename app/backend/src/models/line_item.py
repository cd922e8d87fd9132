"""Invoice line item model."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, Money

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .invoice import Invoice
    from .job import Job


class InvoiceItem(Base):
    """One billed job on an invoice.

    ``amount`` is the net fee captured when the job was billed and never follows
    later settings changes. ``job_id`` is unique so the store itself rejects a
    second line for the same job.
    """

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id"), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
    job: Mapped["Job"] = relationship("Job", back_populates="invoice_item")


__all__ = ["InvoiceItem"]

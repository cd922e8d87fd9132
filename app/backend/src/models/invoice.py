"""Invoice model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, Money, utcnow

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .company import Company
    from .line_item import InvoiceItem

INVOICE_STATUS_UNPAID = "unpaid"
INVOICE_STATUS_PAID = "paid"


class Invoice(Base):
    """Monthly commission statement for one partner company.

    At most one invoice exists per ``(company_id, month_year)`` once a
    generation run has finished. The pair is indexed but not unique here:
    duplicates left behind by interleaved runs are folded together by
    :func:`app.backend.src.services.invoice_engine.merge_duplicate_invoices`.
    """

    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_company_month", "company_id", "month_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=INVOICE_STATUS_UNPAID
    )
    # Gross amount, always derived from the current items.
    total_amount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0.00")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    company: Mapped["Company"] = relationship("Company", back_populates="invoices")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    @property
    def is_paid(self) -> bool:
        return self.status == INVOICE_STATUS_PAID


__all__ = ["INVOICE_STATUS_PAID", "INVOICE_STATUS_UNPAID", "Invoice"]

"""Job ledger model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, Money, utcnow

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .company import Company
    from .line_item import InvoiceItem

JOB_STATUS_OPEN = "open"
JOB_STATUS_DONE = "done"
JOB_STATUS_CANCELLED = "cancelled"
JOB_STATUSES = (JOB_STATUS_OPEN, JOB_STATUS_DONE, JOB_STATUS_CANCELLED)


class Job(Base):
    """A single service call dispatched to a partner company."""

    __tablename__ = "jobs"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    customer_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="private_customer"
    )
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    service_address: Mapped[str] = mapped_column(String(512), nullable=False)
    trade: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    activity: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JOB_STATUS_OPEN, index=True
    )
    report_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Overrides the standard fee for non-cancelled jobs when set.
    referral_fee: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    company: Mapped["Company"] = relationship("Company", back_populates="jobs")
    invoice_item: Mapped["InvoiceItem | None"] = relationship(
        "InvoiceItem", back_populates="job", uselist=False
    )

    @property
    def is_billed(self) -> bool:
        return self.invoice_item is not None


__all__ = [
    "JOB_STATUSES",
    "JOB_STATUS_CANCELLED",
    "JOB_STATUS_DONE",
    "JOB_STATUS_OPEN",
    "Job",
]

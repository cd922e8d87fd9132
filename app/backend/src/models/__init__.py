"""ORM models exposed for easy imports."""

from .billing_settings import BillingSettings
from .company import Company
from .invoice import Invoice
from .job import Job
from .line_item import InvoiceItem

__all__ = [
    "BillingSettings",
    "Company",
    "Invoice",
    "InvoiceItem",
    "Job",
]

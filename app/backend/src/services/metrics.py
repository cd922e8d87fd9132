"""Prometheus metric definitions for invoice generation."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

invoice_generation_runs_total = Counter(
    "invoice_generation_runs_total",
    "Total invoice generation runs by outcome.",
    labelnames=["outcome"],
)

invoice_items_billed_total = Counter(
    "invoice_items_billed_total",
    "Jobs added to invoices as new line items.",
)

invoice_duplicates_merged_total = Counter(
    "invoice_duplicates_merged_total",
    "Duplicate invoices folded into a master invoice.",
)

pdf_generation_seconds = Histogram(
    "invoice_pdf_generation_seconds",
    "Time spent rendering a single invoice PDF.",
)

__all__ = [
    "invoice_duplicates_merged_total",
    "invoice_generation_runs_total",
    "invoice_items_billed_total",
    "pdf_generation_seconds",
]

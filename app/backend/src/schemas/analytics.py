"""Analytics schemas."""

from decimal import Decimal

from pydantic import BaseModel


class DashboardStats(BaseModel):
    open_jobs: int
    done_jobs_month: int
    unpaid_invoices: int
    monthly_revenue: Decimal

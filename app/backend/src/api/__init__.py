"""Public API routers exposed by the FastAPI application."""

from . import (
    analytics,
    companies,
    health,
    invoices,
    jobs,
    settings,
)

__all__ = [
    "analytics",
    "companies",
    "health",
    "invoices",
    "jobs",
    "settings",
]

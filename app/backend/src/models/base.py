"""SQLAlchemy declarative base and shared column helpers."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Numeric
from sqlalchemy.orm import DeclarativeBase

# Currency columns: two decimal places, returned as ``Decimal``.
Money = Numeric(12, 2, asdecimal=True)


def utcnow() -> datetime:
    """Return the current UTC time with microsecond precision."""

    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base for SQLAlchemy models."""

    type_annotation_map = {Decimal: Money}

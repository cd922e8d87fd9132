"""Billing settings storage and the per-run billing policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.core.errors import ValidationError
from app.backend.src.models import BillingSettings, Job
from app.backend.src.models.billing_settings import SETTINGS_ROW_ID
from app.backend.src.models.job import JOB_STATUS_CANCELLED
from app.backend.src.services.calculations import round2
from app.backend.src.services.job_ledger import canonical_status, canonical_statuses

LOGGER = structlog.get_logger(__name__)

UPDATABLE_SETTINGS_FIELDS = {
    "company_name",
    "address",
    "uid",
    "standard_fee",
    "cancellation_fee",
    "vat_rate",
}


@dataclass(frozen=True, slots=True)
class BillingPolicy:
    """Immutable snapshot of the billing rules used for one generation run."""

    standard_fee: Decimal
    cancellation_fee: Decimal
    vat_rate: Decimal
    billable_statuses: frozenset[str] = field(
        default_factory=lambda: frozenset({"open", "done", "cancelled"})
    )

    def get_standard_fee(self) -> Decimal:
        return self.standard_fee

    def get_cancellation_fee(self) -> Decimal:
        return self.cancellation_fee

    def get_vat_rate(self) -> Decimal:
        return self.vat_rate

    def fee_for(self, job: Job) -> Decimal:
        """Return the net amount to bill for ``job``.

        Cancelled jobs always carry the cancellation fee; every other billable
        status uses the job's own referral fee when set, else the standard fee.
        """

        if canonical_status(job.status) == JOB_STATUS_CANCELLED:
            return round2(self.cancellation_fee)
        if job.referral_fee is not None:
            return round2(job.referral_fee)
        return round2(self.standard_fee)


def _defaults(settings: Settings) -> dict[str, object]:
    return {
        "company_name": settings.issuer_name,
        "address": "",
        "uid": "",
        "standard_fee": settings.default_standard_fee,
        "cancellation_fee": settings.default_cancellation_fee,
        "vat_rate": settings.default_vat_rate,
    }


def get_billing_settings(session: Session) -> BillingSettings:
    """Return the settings row, creating it from configuration defaults if absent."""

    record = session.get(BillingSettings, SETTINGS_ROW_ID)
    if record is None:
        record = BillingSettings(id=SETTINGS_ROW_ID, **_defaults(get_settings()))
        session.add(record)
        session.commit()
        session.refresh(record)
        LOGGER.info("billing_settings_initialized", settings_id=record.id)
    return record


def _validate(values: dict[str, object]) -> None:
    standard_fee = Decimal(values["standard_fee"])
    cancellation_fee = Decimal(values["cancellation_fee"])
    vat_rate = Decimal(values["vat_rate"])

    if standard_fee <= 0:
        raise ValidationError("Standard fee must be positive", field="standard_fee")
    if cancellation_fee < 0 or cancellation_fee >= standard_fee:
        raise ValidationError(
            "Cancellation fee must be lower than the standard fee",
            field="cancellation_fee",
        )
    if not Decimal("0") <= vat_rate < Decimal("1"):
        raise ValidationError("VAT rate must be a ratio between 0 and 1", field="vat_rate")


def update_billing_settings(session: Session, values: dict[str, object]) -> BillingSettings:
    """Update the settings row. Already billed items keep their captured amounts."""

    record = get_billing_settings(session)
    unknown = set(values) - UPDATABLE_SETTINGS_FIELDS
    if unknown:
        field_name = sorted(unknown)[0]
        raise ValidationError(f"Field '{field_name}' cannot be changed", field=field_name)

    merged = {name: getattr(record, name) for name in UPDATABLE_SETTINGS_FIELDS}
    merged.update({name: value for name, value in values.items() if value is not None})
    _validate(merged)

    for name, value in merged.items():
        setattr(record, name, value)
    session.commit()
    session.refresh(record)
    LOGGER.info("billing_settings_updated", fields=sorted(values))
    return record


def load_billing_policy(session: Session) -> BillingPolicy:
    """Read settings once and freeze them into a :class:`BillingPolicy`."""

    record = get_billing_settings(session)
    return BillingPolicy(
        standard_fee=Decimal(record.standard_fee),
        cancellation_fee=Decimal(record.cancellation_fee),
        vat_rate=Decimal(record.vat_rate),
        billable_statuses=canonical_statuses(get_settings().billable_statuses),
    )


__all__ = [
    "BillingPolicy",
    "get_billing_settings",
    "load_billing_policy",
    "update_billing_settings",
]

"""Application configuration utilities."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./referral_billing.db", alias="DATABASE_URL"
    )
    db_connect_timeout: int = Field(default=5, alias="DB_CONNECT_TIMEOUT")
    db_statement_timeout_ms: int = Field(
        default=15000, alias="DB_STATEMENT_TIMEOUT_MS"
    )
    db_pool_timeout: int = Field(default=10, alias="DB_POOL_TIMEOUT")

    default_standard_fee: Decimal = Field(
        default=Decimal("49.00"), alias="DEFAULT_STANDARD_FEE"
    )
    default_cancellation_fee: Decimal = Field(
        default=Decimal("14.90"), alias="DEFAULT_CANCELLATION_FEE"
    )
    default_vat_rate: Decimal = Field(default=Decimal("0.20"), alias="DEFAULT_VAT_RATE")
    billable_statuses_raw: str = Field(
        default="open,done,cancelled", alias="BILLABLE_STATUSES"
    )
    issuer_name: str = Field(default="Notprofi24", alias="ISSUER_NAME")

    smtp_host: str = Field(default="localhost", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_from: str = Field(
        default="Notprofi24.at <noreply@notprofi24.at>", alias="SMTP_FROM"
    )
    smtp_timeout: int = Field(default=10, alias="SMTP_TIMEOUT")
    smtp_starttls: bool = Field(default=True, alias="SMTP_STARTTLS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def get(self, key: str, default: object | None = None) -> object | None:
        """Dictionary-style access to configuration values."""

        return self.model_dump(by_alias=True).get(key, default)

    @property
    def billable_statuses(self) -> frozenset[str]:
        """Return the configured set of job statuses that may be invoiced."""

        return frozenset(
            token.strip().lower()
            for token in self.billable_statuses_raw.split(",")
            if token.strip()
        )

    @property
    def is_sqlite(self) -> bool:
        """Return ``True`` when the configured database is SQLite."""

        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]

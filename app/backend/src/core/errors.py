"""Domain errors and their HTTP translation."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

LOGGER = structlog.get_logger(__name__)


class BillingError(Exception):
    """Base class for errors raised by the billing services."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_payload(self) -> dict[str, str]:
        payload = {"message": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(BillingError):
    """Malformed input, rejected before the store is touched."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BillingError):
    """A concurrent run won a race; the next generation run converges."""

    status_code = status.HTTP_409_CONFLICT


class StoreUnavailableError(BillingError):
    """The database could not be reached in time. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Data store unavailable, please try again") -> None:
        super().__init__(message)


class DeliveryError(BillingError):
    """Sending a document failed; invoice state is left untouched."""

    status_code = status.HTTP_502_BAD_GATEWAY


STORE_ERRORS = (OperationalError, PoolTimeoutError)


async def _billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    LOGGER.info(
        "request_rejected",
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    LOGGER.warning("delivery_failed", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


async def _store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error("store_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=StoreUnavailableError.status_code,
        content=StoreUnavailableError().to_payload(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach handlers translating domain errors into JSON responses."""

    app.add_exception_handler(DeliveryError, _delivery_error_handler)
    app.add_exception_handler(BillingError, _billing_error_handler)
    for error_type in STORE_ERRORS:
        app.add_exception_handler(error_type, _store_error_handler)


__all__ = [
    "BillingError",
    "ConflictError",
    "DeliveryError",
    "NotFoundError",
    "STORE_ERRORS",
    "StoreUnavailableError",
    "ValidationError",
    "register_exception_handlers",
]

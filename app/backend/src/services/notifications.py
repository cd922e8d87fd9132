"""Outbound e-mail delivery."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage

import structlog

from app.backend.src.core.config import get_settings
from app.backend.src.core.errors import DeliveryError

LOGGER = structlog.get_logger(__name__)


def send_email(
    recipient: str,
    subject: str,
    body: str,
    *,
    attachment: bytes | None = None,
    attachment_name: str | None = None,
) -> None:
    """Send a plain-text mail, optionally with a PDF attachment.

    Raises :class:`DeliveryError` when the SMTP exchange fails.
    """

    settings = get_settings()
    message = EmailMessage()
    message["From"] = settings.smtp_from
    message["To"] = recipient
    message["Subject"] = subject
    message.set_content(body)
    if attachment is not None:
        message.add_attachment(
            attachment,
            maintype="application",
            subtype="pdf",
            filename=attachment_name or "document.pdf",
        )

    try:
        with smtplib.SMTP(
            settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout
        ) as client:
            if settings.smtp_starttls:
                client.starttls()
            if settings.smtp_user:
                client.login(settings.smtp_user, settings.smtp_password or "")
            client.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        LOGGER.warning("email_send_failed", recipient=recipient, subject=subject, error=str(exc))
        raise DeliveryError(f"Failed to send email: {exc}") from exc

    LOGGER.info("email_sent", recipient=recipient, subject=subject)


def invoice_email_body(month_year: str, issuer_name: str) -> str:
    return (
        "Sehr geehrte Damen und Herren,\n\n"
        f"anbei erhalten Sie die Abrechnung für {month_year}.\n\n"
        "Mit freundlichen Grüßen,\n"
        f"Ihr {issuer_name} Team"
    )


__all__ = ["invoice_email_body", "send_email"]

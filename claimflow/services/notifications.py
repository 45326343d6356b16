"""
Email notifications.

Plain SMTP delivery; called from Celery tasks only.
"""

import smtplib
from email.message import EmailMessage

from claimflow.api.config import settings
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


def build_claim_created_message(
    to_address: str,
    recipient_name: str,
    claim_number: int,
    claim_id: str,
) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = f"Claim #{claim_number} received"
    message["From"] = settings.EMAIL_FROM
    message["To"] = to_address
    link = f"{settings.APP_URL.rstrip('/')}/claims/{claim_id}"
    message.set_content(
        f"Hello {recipient_name},\n\n"
        f"Your claim #{claim_number} has been created and is now in draft.\n"
        f"You can follow its progress at {link}\n"
    )
    return message


def send_email(message: EmailMessage) -> None:
    """Send ``message`` over SMTP. Raises on delivery failure."""
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)
    logger.info(f"Sent email '{message['Subject']}' to {message['To']}")

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from salesflow.core.celery_app import celery_app
from salesflow.core.config import get_settings

logger = logging.getLogger("salesflow.notifications")


@celery_app.task(name="salesflow.notifications.send_email", bind=True, max_retries=3, default_retry_delay=30)
def send_email(self, to: str, subject: str, body: str) -> None:  # type: ignore[no-untyped-def]
    settings = get_settings()
    message = EmailMessage()
    message["From"] = settings.smtp_sender
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("notification.retry", extra={"recipient": to, "attempt": self.request.retries, "error": str(exc)})
        raise self.retry(exc=exc)

    logger.info("notification.sent", extra={"recipient": to, "notification": subject})

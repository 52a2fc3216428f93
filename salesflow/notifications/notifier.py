"""Outbound customer notifications.

Every notification is best-effort: it is dispatched after the business
transaction has committed and a failure is logged and counted, never raised
to the caller.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Protocol

from salesflow.business.billing.schemas import InvoiceRead
from salesflow.business.revenue.schemas import QuotationRead
from salesflow.core.config import get_settings
from salesflow.crm.schemas import CustomerRead
from salesflow.metrics import observe_notification_failure
from salesflow.notifications.tasks import send_email

logger = logging.getLogger("salesflow.notifications")


class Notifier(Protocol):
    def notify_quotation_sent(self, customer: CustomerRead, quotation: QuotationRead) -> None: ...

    def notify_invoice_generated(self, customer: CustomerRead, invoice: InvoiceRead) -> None: ...

    def notify_password_set(self, customer: CustomerRead) -> None: ...

    def notify_registration_confirmed(self, customer: CustomerRead) -> None: ...


@dataclass(frozen=True, slots=True)
class EmailMessage:
    to: str
    subject: str
    body: str


def _money(value: Decimal | str) -> str:
    return f"{Decimal(str(value)):.2f}"


def quotation_sent_message(customer: CustomerRead, quotation: QuotationRead) -> EmailMessage | None:
    if not customer.email:
        return None
    body = "\n".join(
        [
            f"Dear {customer.name},",
            "",
            "A new quotation has been prepared for you.",
            "",
            f"Title: {quotation.title}",
            f"Description: {quotation.description or '-'}",
            f"Amount: {_money(quotation.total)}",
            f"Valid until: {quotation.valid_until.isoformat()}",
        ]
    )
    return EmailMessage(to=customer.email, subject="New Quotation Available", body=body)


def invoice_generated_message(customer: CustomerRead, invoice: InvoiceRead) -> EmailMessage | None:
    if not customer.email:
        return None
    body = "\n".join(
        [
            f"Dear {customer.name},",
            "",
            f"Invoice {invoice.invoice_number} has been issued.",
            "",
            f"Subtotal: {_money(invoice.subtotal)}",
            f"Tax ({_money(invoice.tax_rate)}%): {_money(invoice.tax_amount)}",
            f"Total: {_money(invoice.total)}",
            f"Due date: {invoice.due_date.isoformat()}",
            f"Terms: {invoice.terms or '-'}",
        ]
    )
    return EmailMessage(to=customer.email, subject=f"Invoice {invoice.invoice_number}", body=body)


def password_set_message(customer: CustomerRead) -> EmailMessage | None:
    if not customer.email:
        return None
    body = f"Dear {customer.name},\n\nA password has been set for your customer portal account."
    return EmailMessage(to=customer.email, subject="Your account password", body=body)


def registration_confirmed_message(customer: CustomerRead) -> EmailMessage | None:
    if not customer.email:
        return None
    body = f"Dear {customer.name},\n\nYour registration is complete. You can now sign in with {customer.email}."
    return EmailMessage(to=customer.email, subject="Registration confirmed", body=body)


class MessageNotifier(ABC):
    @abstractmethod
    def deliver(self, message: EmailMessage) -> None:
        """Hand one rendered message to the transport."""

    def _send(self, kind: str, message: EmailMessage | None) -> None:
        if message is None:
            logger.info("notification.skipped", extra={"notification": kind})
            return
        self.deliver(message)

    def notify_quotation_sent(self, customer: CustomerRead, quotation: QuotationRead) -> None:
        self._send("quotation_sent", quotation_sent_message(customer, quotation))

    def notify_invoice_generated(self, customer: CustomerRead, invoice: InvoiceRead) -> None:
        self._send("invoice_generated", invoice_generated_message(customer, invoice))

    def notify_password_set(self, customer: CustomerRead) -> None:
        self._send("password_set", password_set_message(customer))

    def notify_registration_confirmed(self, customer: CustomerRead) -> None:
        self._send("registration_confirmed", registration_confirmed_message(customer))


class LoggingNotifier(MessageNotifier):
    def deliver(self, message: EmailMessage) -> None:
        logger.info("notification.logged", extra={"recipient": message.to, "notification": message.subject})


class CeleryEmailNotifier(MessageNotifier):
    def deliver(self, message: EmailMessage) -> None:
        send_email.delay(message.to, message.subject, message.body)
        logger.info("notification.queued", extra={"recipient": message.to, "notification": message.subject})


def dispatch(kind: str, send: Callable[[], None]) -> bool:
    """Run a notification call, absorbing and recording any failure."""
    try:
        send()
    except Exception as exc:
        observe_notification_failure(kind)
        logger.warning("notification.failed", exc_info=True, extra={"notification": kind, "error": str(exc)})
        return False
    return True


@lru_cache
def get_notifier() -> Notifier:
    backend = get_settings().notifier_backend.lower()
    if backend == "celery":
        return CeleryEmailNotifier()
    return LoggingNotifier()

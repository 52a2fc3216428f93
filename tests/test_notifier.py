from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

import pytest

from salesflow.crm.schemas import CustomerRead
from salesflow.notifications.notifier import EmailMessage, LoggingNotifier, MessageNotifier


def _customer(email: str | None = "buyer@acme-corp.com") -> CustomerRead:
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)
    return CustomerRead(
        id=uuid.uuid4(),
        name="Acme Corp",
        email=email,
        phone_number=None,
        address=None,
        city=None,
        state=None,
        zip_code=None,
        country=None,
        website=None,
        has_password=True,
        type="NEW",
        status="ACTIVE",
        created_at=now,
        updated_at=now,
    )


class OutboxNotifier(MessageNotifier):
    def __init__(self) -> None:
        self.outbox: list[EmailMessage] = []

    def deliver(self, message: EmailMessage) -> None:
        self.outbox.append(message)


def test_message_notifier_requires_a_transport() -> None:
    with pytest.raises(TypeError):
        MessageNotifier()  # type: ignore[abstract]


def test_rendered_messages_reach_the_transport() -> None:
    notifier = OutboxNotifier()

    notifier.notify_password_set(_customer())
    notifier.notify_registration_confirmed(_customer())

    assert [(message.to, message.subject) for message in notifier.outbox] == [
        ("buyer@acme-corp.com", "Your account password"),
        ("buyer@acme-corp.com", "Registration confirmed"),
    ]


def test_customer_without_email_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="salesflow.notifications")
    notifier = OutboxNotifier()

    notifier.notify_password_set(_customer(email=None))

    assert notifier.outbox == []
    assert any(record.getMessage() == "notification.skipped" for record in caplog.records)


def test_logging_notifier_logs_recipient(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="salesflow.notifications")

    LoggingNotifier().notify_registration_confirmed(_customer())

    assert any(
        record.getMessage() == "notification.logged" and getattr(record, "recipient", None) == "buyer@acme-corp.com"
        for record in caplog.records
    )

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import replace

import pytest

from settlement import worker
from settlement.core.config import SETTINGS
from settlement.services import mailer
from settlement.services.task_queue import EMAIL_DELIVERY_QUEUE, InMemoryTaskQueue

LINK = "https://app.test/auth/reset-password?token=s3cret-token&email=ada%40example.com"


class FakeSMTP:
    """Records what the mailer does with its SMTP connection."""

    instances: list[FakeSMTP] = []
    fail_send = False

    def __init__(self, host: str, port: int, timeout: float | None = None) -> None:
        self.host, self.port = host, port
        self.calls: list[str] = []
        self.sent: list = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> FakeSMTP:
        return self

    def __exit__(self, *exc) -> None:
        self.calls.append("quit")

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, user: str, password: str) -> None:
        self.calls.append(f"login:{user}")

    def send_message(self, message) -> None:
        if FakeSMTP.fail_send:
            raise smtplib.SMTPRecipientsRefused({message["To"]: (550, b"no such user")})
        self.sent.append(message)


@pytest.fixture
def queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


@pytest.fixture
def smtp(monkeypatch: pytest.MonkeyPatch) -> type[FakeSMTP]:
    FakeSMTP.instances = []
    FakeSMTP.fail_send = False
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(
        mailer,
        "SETTINGS",
        replace(
            SETTINGS,
            smtp_host="smtp.test",
            smtp_port=2525,
            smtp_username="mailer",
            smtp_password="pw",
            mail_from="courses@example.com",
        ),
    )
    return FakeSMTP


def _enqueue_reset(queue: InMemoryTaskQueue, to: str = "ada@example.com") -> None:
    asyncio.run(
        queue.enqueue(
            EMAIL_DELIVERY_QUEUE, {"to": to, "purpose": "password_reset", "link": LINK}
        )
    )


def test_email_task_sent_over_smtp_without_logging_link(queue, smtp, caplog) -> None:
    _enqueue_reset(queue)

    with caplog.at_level(logging.INFO):
        handled = asyncio.run(worker.run_once(queue, timeout=0))

    assert handled == 1
    (conn,) = smtp.instances
    assert (conn.host, conn.port) == ("smtp.test", 2525)
    assert conn.calls == ["starttls", "login:mailer", "quit"]
    (message,) = conn.sent
    assert message["To"] == "ada@example.com"
    assert message["From"] == "courses@example.com"
    assert message["Subject"] == "Reset your password"
    assert LINK in message.get_content()

    assert asyncio.run(queue.queue_length(EMAIL_DELIVERY_QUEUE)) == 0
    assert "Delivered password_reset email to ada@example.com" in caplog.text
    assert "s3cret-token" not in caplog.text


def test_email_skipped_when_smtp_not_configured(
    queue, caplog, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(mailer, "SETTINGS", replace(SETTINGS, smtp_host=None))
    _enqueue_reset(queue)

    with caplog.at_level(logging.INFO, logger="settlement.worker"):
        asyncio.run(worker.run_once(queue, timeout=0))

    assert "Email delivery skipped, SMTP not configured" in caplog.text
    assert "Delivered" not in caplog.text


def test_smtp_failure_drops_task(queue, smtp, caplog) -> None:
    smtp.fail_send = True
    _enqueue_reset(queue)

    with caplog.at_level(logging.INFO, logger="settlement.worker"):
        assert asyncio.run(worker.run_once(queue, timeout=0)) == 1

    assert "Dropped task=" in caplog.text
    assert "Delivered" not in caplog.text


def test_bad_task_is_logged_and_dropped(queue, smtp, caplog) -> None:
    asyncio.run(queue.enqueue(EMAIL_DELIVERY_QUEUE, {"purpose": "password_reset"}))
    asyncio.run(
        queue.enqueue(
            EMAIL_DELIVERY_QUEUE, {"to": "b@example.com", "purpose": "spam", "link": LINK}
        )
    )
    _enqueue_reset(queue, to="c@example.com")

    with caplog.at_level(logging.INFO, logger="settlement.worker"):
        handled = [asyncio.run(worker.run_once(queue, timeout=0)) for _ in range(3)]

    assert handled == [1, 1, 1]
    assert caplog.text.count("Dropped task=") == 2
    assert "Delivered password_reset email to c@example.com" in caplog.text


def test_empty_queues_handle_nothing(queue) -> None:
    assert asyncio.run(worker.run_once(queue, timeout=0)) == 0


def test_register_handler_adds_queue(queue, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(worker, "HANDLERS", dict(worker.HANDLERS))
    seen: list[dict] = []

    @worker.register_handler("receipts")
    async def handle_receipt(payload: dict) -> None:
        seen.append(payload)

    asyncio.run(queue.enqueue("receipts", {"reference": "crs_1"}))
    asyncio.run(worker.run_once(queue, timeout=0))

    assert seen == [{"reference": "crs_1"}]

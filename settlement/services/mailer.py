"""Outbound email over SMTP.

The worker is the only caller.  ``smtplib`` is blocking, so each send
runs in a thread; the event loop keeps draining other queues meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from settlement.core.config import SETTINGS, Settings

logger = logging.getLogger(__name__)


class MailerNotConfigured(RuntimeError):
    """SMTP_HOST is unset, so there is nowhere to send mail."""


def build_message(settings: Settings, to: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.mail_from
    message["To"] = to
    message.set_content(body)
    return message


def _send(settings: Settings, message: EmailMessage) -> None:
    assert settings.smtp_host is not None
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_starttls:
            server.starttls()
        if settings.smtp_username and settings.smtp_password:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(message)


async def send_email(
    to: str, subject: str, body: str, *, settings: Settings | None = None
) -> None:
    """Raises MailerNotConfigured without SMTP_HOST, smtplib errors on failure."""
    settings = settings or SETTINGS
    if not settings.smtp_host:
        raise MailerNotConfigured("SMTP_HOST is not set")
    message = build_message(settings, to, subject, body)
    await asyncio.to_thread(_send, settings, message)
    logger.info("Sent %r to %s via %s", subject, to, settings.smtp_host)

"""Task worker: ``python -m settlement.worker`` (same image as the API).

The loop polls every registered queue round-robin, dequeues one task at
a time and dispatches it to its handler.  A failing task is logged and
dropped; the queue is at-most-once (see services/task_queue.py).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from settlement.core.config import SETTINGS
from settlement.core.logging import setup_logging
from settlement.services import mailer
from settlement.services.task_queue import EMAIL_DELIVERY_QUEUE, TaskQueue, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("settlement.worker")


HANDLERS: dict[str, TaskHandler] = {}

EMAIL_COPY = {
    "password_reset": (
        "Reset your password",
        "Use the link below to choose a new password. It expires in one hour.",
    ),
    "email_verification": (
        "Verify your email address",
        "Confirm your email address with the link below. It expires in 24 hours.",
    ),
}


def register_handler(queue: str):
    """Route tasks from ``queue`` to the decorated coroutine."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(EMAIL_DELIVERY_QUEUE)
async def handle_email_delivery(payload: dict) -> None:
    """Deliver a password-reset or verify-email link.

    The link embeds a live single-use token, so it is never logged.
    Without SMTP configured the task is dropped with a warning; the user
    can ask for a fresh link once mail is set up.
    """
    recipient = payload.get("to")
    link = payload.get("link")
    if not recipient or not link:
        raise ValueError("email task missing recipient or link")
    purpose = payload.get("purpose")
    if purpose not in EMAIL_COPY:
        raise ValueError(f"unknown email purpose {purpose!r}")
    subject, intro = EMAIL_COPY[purpose]
    body = f"{intro}\n\n{link}\n\nIf you did not ask for this, ignore this email.\n"
    try:
        await mailer.send_email(recipient, subject, body)
    except mailer.MailerNotConfigured:
        logger.warning(
            "Email delivery skipped, SMTP not configured: %s to %s", purpose, recipient
        )
        return
    logger.info("Delivered %s email to %s", purpose, recipient)


async def run_once(queue: TaskQueue, timeout: int = 1) -> int:
    """Poll every queue once.  Returns the number of tasks handled."""
    handled = 0
    for queue_name, handler in HANDLERS.items():
        task = await queue.dequeue(queue_name, timeout=timeout)
        if task is None:
            continue
        handled += 1
        try:
            await handler(task.payload)
            logger.debug("Handled task=%s queue=%s", task.id, queue_name)
        except Exception:
            logger.exception("Dropped task=%s queue=%s after handler error", task.id, queue_name)
    return handled


async def run_worker() -> None:
    logger.info("Worker started, listening on queues: %s", list(HANDLERS))
    while True:
        await run_once(task_queue)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())

"""Accounts: registration, login, password reset and email verification.

Reset and verification use single-use tokens.  The raw token is handed
to the email_delivery queue and never returned to the HTTP caller or
written to a log.  Requests for unknown emails succeed silently so the
endpoints cannot reveal which addresses are registered.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from urllib.parse import urlencode
from uuid import UUID

from settlement.core.config import SETTINGS
from settlement.core.errors import ConflictError, InvalidInputError, NotFoundError
from settlement.db.ledger import LedgerStore, ledger_store
from settlement.models.single_use_token import TokenPurpose
from settlement.models.user import User
from settlement.services import one_time_tokens
from settlement.services.auth_service import authenticate_user, hash_password
from settlement.services.one_time_tokens import ConsumeResult
from settlement.services.task_queue import EMAIL_DELIVERY_QUEUE, TaskQueue, task_queue
from settlement.services.transactions import atomic

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


class AccountService:
    def __init__(
        self,
        store: LedgerStore,
        queue: TaskQueue,
        *,
        frontend_url: str = SETTINGS.frontend_url,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._queue = queue
        self._frontend_url = frontend_url
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    async def register(self, email: str, password: str, name: str = "") -> User:
        email = email.strip().lower()
        if "@" not in email:
            raise InvalidInputError("a valid email is required")
        _check_password(password)
        user = User.new(email=email, password_hash=hash_password(password), name=name)
        async with atomic(self._store) as tx:
            if await tx.users.get_by_email(email) is not None:
                raise ConflictError("email already registered")
            await tx.users.add(user)
            token = await one_time_tokens.issue(
                tx, user.id, TokenPurpose.EMAIL_VERIFICATION, now=self._now()
            )
        logger.info("Registered user=%s", user.id)
        await self._deliver(user, TokenPurpose.EMAIL_VERIFICATION, token)
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        async with atomic(self._store) as tx:
            return await authenticate_user(tx.users, email, password)

    async def get_user(self, user_id: UUID) -> User:
        async with atomic(self._store) as tx:
            user = await tx.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        return user

    async def request_password_reset(self, email: str) -> None:
        await self._request_token(email, TokenPurpose.PASSWORD_RESET)

    async def request_email_verification(self, email: str) -> None:
        await self._request_token(email, TokenPurpose.EMAIL_VERIFICATION)

    async def _request_token(self, email: str, purpose: TokenPurpose) -> None:
        email = email.strip().lower()
        async with atomic(self._store) as tx:
            user = await tx.users.get_by_email(email)
            if user is None:
                logger.info("%s requested for unknown email", purpose)
                return
            token = await one_time_tokens.issue(tx, user.id, purpose, now=self._now())
        await self._deliver(user, purpose, token)

    async def confirm_password_reset(
        self, email: str, token: str, new_password: str
    ) -> ConsumeResult:
        _check_password(new_password)
        email = email.strip().lower()
        async with atomic(self._store) as tx:
            user = await tx.users.get_by_email(email)
            if user is None:
                return ConsumeResult.INVALID
            result = await one_time_tokens.consume(
                tx, user.id, TokenPurpose.PASSWORD_RESET, token, now=self._now()
            )
            if result == ConsumeResult.SUCCESS:
                await tx.users.update_password_hash(user.id, hash_password(new_password))
                logger.info("Password reset for user=%s", user.id)
        return result

    async def confirm_email_verification(self, email: str, token: str) -> ConsumeResult:
        email = email.strip().lower()
        async with atomic(self._store) as tx:
            user = await tx.users.get_by_email(email)
            if user is None:
                return ConsumeResult.INVALID
            result = await one_time_tokens.consume(
                tx, user.id, TokenPurpose.EMAIL_VERIFICATION, token, now=self._now()
            )
            if result == ConsumeResult.SUCCESS:
                await tx.users.mark_email_verified(user.id)
                logger.info("Email verified for user=%s", user.id)
        return result

    async def _deliver(self, user: User, purpose: TokenPurpose, token: str) -> None:
        path = "reset-password" if purpose == TokenPurpose.PASSWORD_RESET else "verify-email"
        task = await self._queue.enqueue(
            EMAIL_DELIVERY_QUEUE,
            {
                "to": user.email,
                "purpose": str(purpose),
                "link": f"{self._frontend_url}/auth/{path}?"
                + urlencode({"token": token, "email": user.email}),
            },
        )
        logger.info("Queued %s email task=%s for user=%s", purpose, task.id, user.id)


account_service = AccountService(ledger_store, task_queue)

"""Single-use, time-bound tokens (password reset, email verification).

    token = await issue(tx, user.id, TokenPurpose.PASSWORD_RESET, now=now)
    result = await consume(tx, user.id, TokenPurpose.PASSWORD_RESET, token, now=now)

Only the SHA-256 of a token is stored; the raw value goes to the user
(via the email_delivery queue) and nowhere else.  A token works once:
``consume`` marks it used with a conditional write, so two concurrent
redemptions cannot both succeed.  Issuing a new token for the same
subject and purpose retires any earlier unused ones.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from enum import StrEnum
from uuid import UUID

from settlement.db.ledger import Ledger
from settlement.models.single_use_token import SingleUseToken, TokenPurpose

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = {
    TokenPurpose.PASSWORD_RESET: 60 * 60,
    TokenPurpose.EMAIL_VERIFICATION: 24 * 60 * 60,
}


class ConsumeResult(StrEnum):
    SUCCESS = "success"
    EXPIRED = "expired"
    INVALID = "invalid"


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def issue(
    tx: Ledger,
    subject_id: UUID,
    purpose: TokenPurpose,
    *,
    now: int,
    ttl_seconds: int | None = None,
) -> str:
    ttl = ttl_seconds if ttl_seconds is not None else DEFAULT_TTL_SECONDS[purpose]
    token = secrets.token_urlsafe(32)
    superseded = await tx.tokens.invalidate_unused(subject_id, purpose, now)
    await tx.tokens.add(
        SingleUseToken.new(
            subject_id=subject_id,
            purpose=purpose,
            token_hash=_digest(token),
            expires_at=now + ttl,
        )
    )
    logger.info(
        "Issued %s token for user=%s (superseded %d)", purpose, subject_id, superseded
    )
    return token


async def consume(
    tx: Ledger,
    subject_id: UUID,
    purpose: TokenPurpose,
    token: str,
    *,
    now: int,
) -> ConsumeResult:
    stored = await tx.tokens.find(subject_id, purpose, _digest(token))
    if stored is None or stored.used_at is not None:
        logger.warning("Rejected %s token for user=%s: invalid", purpose, subject_id)
        return ConsumeResult.INVALID
    if stored.expires_at <= now:
        logger.warning("Rejected %s token for user=%s: expired", purpose, subject_id)
        return ConsumeResult.EXPIRED
    if not await tx.tokens.mark_used(stored.id, now):
        return ConsumeResult.INVALID
    return ConsumeResult.SUCCESS

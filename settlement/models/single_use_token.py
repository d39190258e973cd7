from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID, uuid4


class TokenPurpose(StrEnum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True, slots=True)
class SingleUseToken:
    """Stored half of a one-shot token: only the SHA-256 of the secret."""

    id: UUID
    subject_id: UUID
    purpose: TokenPurpose
    token_hash: str
    expires_at: int
    used_at: int | None = None

    @staticmethod
    def new(
        *, subject_id: UUID, purpose: TokenPurpose, token_hash: str, expires_at: int
    ) -> SingleUseToken:
        return SingleUseToken(
            id=uuid4(),
            subject_id=subject_id,
            purpose=purpose,
            token_hash=token_hash,
            expires_at=expires_at,
        )

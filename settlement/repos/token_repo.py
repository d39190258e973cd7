from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from settlement.models.single_use_token import SingleUseToken, TokenPurpose
from settlement.repos._memory import SnapshotMixin


class TokenRepo(Protocol):
    async def add(self, token: SingleUseToken) -> None: ...
    async def find(
        self, subject_id: UUID, purpose: TokenPurpose, token_hash: str
    ) -> SingleUseToken | None: ...
    async def mark_used(self, token_id: UUID, at: int) -> bool:
        """Set used_at if still unused.  Returns False if someone got there first."""
        ...
    async def invalidate_unused(self, subject_id: UUID, purpose: TokenPurpose, at: int) -> int: ...


class InMemoryTokenRepo(SnapshotMixin):
    _TABLES = ("_by_id",)

    def __init__(self) -> None:
        self._by_id: dict[UUID, SingleUseToken] = {}

    async def add(self, token: SingleUseToken) -> None:
        self._by_id[token.id] = token

    async def find(
        self, subject_id: UUID, purpose: TokenPurpose, token_hash: str
    ) -> SingleUseToken | None:
        return next(
            (
                t
                for t in self._by_id.values()
                if t.subject_id == subject_id
                and t.purpose == purpose
                and t.token_hash == token_hash
            ),
            None,
        )

    async def mark_used(self, token_id: UUID, at: int) -> bool:
        t = self._by_id.get(token_id)
        if t is None or t.used_at is not None:
            return False
        self._by_id[token_id] = replace(t, used_at=at)
        return True

    async def invalidate_unused(self, subject_id: UUID, purpose: TokenPurpose, at: int) -> int:
        stale = [
            t
            for t in self._by_id.values()
            if t.subject_id == subject_id and t.purpose == purpose and t.used_at is None
        ]
        for t in stale:
            self._by_id[t.id] = replace(t, used_at=at)
        return len(stale)

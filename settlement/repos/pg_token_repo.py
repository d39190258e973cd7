"""PostgreSQL implementation of TokenRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import SingleUseTokenRow
from settlement.models.single_use_token import SingleUseToken, TokenPurpose


class PgTokenRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, token: SingleUseToken) -> None:
        self._session.add(
            SingleUseTokenRow(
                id=token.id,
                subject_id=token.subject_id,
                purpose=str(token.purpose),
                token_hash=token.token_hash,
                expires_at=token.expires_at,
                used_at=token.used_at,
            )
        )
        await self._session.flush()

    async def find(
        self, subject_id: UUID, purpose: TokenPurpose, token_hash: str
    ) -> SingleUseToken | None:
        stmt = select(SingleUseTokenRow).where(
            SingleUseTokenRow.subject_id == subject_id,
            SingleUseTokenRow.purpose == str(purpose),
            SingleUseTokenRow.token_hash == token_hash,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return SingleUseToken(
            id=row.id,
            subject_id=row.subject_id,
            purpose=TokenPurpose(row.purpose),
            token_hash=row.token_hash,
            expires_at=row.expires_at,
            used_at=row.used_at,
        )

    async def mark_used(self, token_id: UUID, at: int) -> bool:
        # Conditional on used_at IS NULL: the one-shot guarantee under concurrency
        stmt = (
            update(SingleUseTokenRow)
            .where(SingleUseTokenRow.id == token_id, SingleUseTokenRow.used_at.is_(None))
            .values(used_at=at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def invalidate_unused(self, subject_id: UUID, purpose: TokenPurpose, at: int) -> int:
        stmt = (
            update(SingleUseTokenRow)
            .where(
                SingleUseTokenRow.subject_id == subject_id,
                SingleUseTokenRow.purpose == str(purpose),
                SingleUseTokenRow.used_at.is_(None),
            )
            .values(used_at=at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

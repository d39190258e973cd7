"""PostgreSQL implementation of UserRepo.

Emails are stored lowercased; the unique index on ``users.email`` is
what actually rejects a duplicate registration under concurrency.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import UserRow
from settlement.models.user import User


class PgUserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        row = await self._session.get(UserRow, user_id)
        return None if row is None else _row_to_user(row)

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(UserRow).where(UserRow.email == email.strip().lower())
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_user(row)

    async def add(self, user: User) -> None:
        self._session.add(
            UserRow(
                id=user.id,
                email=user.email,
                password_hash=user.password_hash,
                name=user.name,
                roles=list(user.roles),
                is_active=user.is_active,
                email_verified=user.email_verified,
            )
        )
        await self._session.flush()

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        await self._set(user_id, password_hash=password_hash)

    async def mark_email_verified(self, user_id: UUID) -> None:
        await self._set(user_id, email_verified=True)

    async def _set(self, user_id: UUID, **values) -> None:
        result = await self._session.execute(
            update(UserRow).where(UserRow.id == user_id).values(**values)
        )
        if result.rowcount == 0:
            raise KeyError("user not found")


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name or "",
        roles=tuple(row.roles or ()),
        is_active=row.is_active,
        email_verified=row.email_verified,
    )

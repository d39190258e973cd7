from __future__ import annotations

from dataclasses import replace
from typing import Any, Protocol
from uuid import UUID

from settlement.models.user import User
from settlement.repos._memory import SnapshotMixin


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...
    async def mark_email_verified(self, user_id: UUID) -> None: ...


class InMemoryUserRepo(SnapshotMixin):
    _TABLES = ("_users",)

    def __init__(self) -> None:
        self._users: dict[UUID, User] = {}

    def _update(self, user_id: UUID, **changes: Any) -> None:
        if user_id not in self._users:
            raise KeyError(f"user {user_id} not found")
        self._users[user_id] = replace(self._users[user_id], **changes)

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        wanted = email.strip().lower()
        for user in self._users.values():
            if user.email == wanted:
                return user
        return None

    async def add(self, user: User) -> None:
        if await self.get_by_email(user.email) is not None:
            raise ValueError(f"email {user.email!r} already registered")
        self._users[user.id] = user

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        self._update(user_id, password_hash=password_hash)

    async def mark_email_verified(self, user_id: UUID) -> None:
        self._update(user_id, email_verified=True)

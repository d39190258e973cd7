from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.progress import Progress
from settlement.repos._memory import SnapshotMixin


class ProgressRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> Progress | None: ...
    async def put(self, progress: Progress) -> None:
        """Replace the record for the pair wholesale."""
        ...


class InMemoryProgressRepo(SnapshotMixin):
    _TABLES = ("_store",)

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Progress] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Progress | None:
        return self._store.get((user_id, course_id))

    async def put(self, progress: Progress) -> None:
        self._store[(progress.user_id, progress.course_id)] = progress

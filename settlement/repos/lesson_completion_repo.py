from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.course import LessonCompletion
from settlement.repos._memory import SnapshotMixin


class LessonCompletionRepo(Protocol):
    async def add(self, completion: LessonCompletion) -> bool: ...
    async def list_for(self, user_id: UUID, course_id: UUID) -> list[LessonCompletion]: ...


class InMemoryLessonCompletionRepo(SnapshotMixin):
    _TABLES = ("_store",)

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], LessonCompletion] = {}

    async def add(self, completion: LessonCompletion) -> bool:
        """Record a completion.  Returns False if it was already recorded."""
        key = (completion.user_id, completion.lesson_id)
        if key in self._store:
            return False
        self._store[key] = completion
        return True

    async def list_for(self, user_id: UUID, course_id: UUID) -> list[LessonCompletion]:
        return [
            c
            for c in self._store.values()
            if c.user_id == user_id and c.course_id == course_id
        ]

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.quiz import Quiz
from settlement.repos._memory import SnapshotMixin


class QuizRepo(Protocol):
    async def get(self, quiz_id: UUID) -> Quiz | None: ...
    async def add(self, quiz: Quiz) -> None: ...
    async def list_by_course(self, course_id: UUID) -> list[Quiz]: ...


class InMemoryQuizRepo(SnapshotMixin):
    _TABLES = ("_by_id",)

    def __init__(self) -> None:
        self._by_id: dict[UUID, Quiz] = {}

    async def get(self, quiz_id: UUID) -> Quiz | None:
        return self._by_id.get(quiz_id)

    async def add(self, quiz: Quiz) -> None:
        self._by_id[quiz.id] = quiz

    async def list_by_course(self, course_id: UUID) -> list[Quiz]:
        return [q for q in self._by_id.values() if q.course_id == course_id]

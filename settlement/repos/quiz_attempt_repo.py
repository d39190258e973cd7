from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.quiz import QuizAttempt
from settlement.repos._memory import SnapshotMixin


class QuizAttemptRepo(Protocol):
    async def add(self, attempt: QuizAttempt) -> None: ...
    async def list_for(self, user_id: UUID, course_id: UUID) -> list[QuizAttempt]: ...


class InMemoryQuizAttemptRepo(SnapshotMixin):
    """Append-only.  Attempts are never updated or removed."""

    _TABLES = ("_by_id",)

    def __init__(self) -> None:
        self._by_id: dict[UUID, QuizAttempt] = {}

    async def add(self, attempt: QuizAttempt) -> None:
        self._by_id[attempt.id] = attempt

    async def list_for(self, user_id: UUID, course_id: UUID) -> list[QuizAttempt]:
        """Oldest first."""
        attempts = [
            a
            for a in self._by_id.values()
            if a.user_id == user_id and a.course_id == course_id
        ]
        return sorted(attempts, key=lambda a: a.created_at)

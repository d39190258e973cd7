from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from settlement.models.enrollment import Enrollment, EnrollmentStatus
from settlement.repos._memory import SnapshotMixin


class EnrollmentRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None: ...

    async def add(self, enrollment: Enrollment) -> bool:
        """Insert unless the (user, course) pair exists.  Returns True if inserted."""
        ...

    async def add_many(self, enrollments: list[Enrollment]) -> list[Enrollment]:
        """Insert each pair that does not exist yet.  Returns the rows inserted."""
        ...

    async def set_status(
        self, user_id: UUID, course_id: UUID, status: EnrollmentStatus
    ) -> Enrollment | None: ...
    async def enrolled_user_ids(
        self, course_id: UUID, user_ids: Iterable[UUID]
    ) -> set[UUID]: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...


class InMemoryEnrollmentRepo(SnapshotMixin):
    _TABLES = ("_store",)

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((user_id, course_id))

    async def add(self, enrollment: Enrollment) -> bool:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._store:
            return False
        self._store[key] = enrollment
        return True

    async def add_many(self, enrollments: list[Enrollment]) -> list[Enrollment]:
        return [e for e in enrollments if await self.add(e)]

    async def set_status(
        self, user_id: UUID, course_id: UUID, status: EnrollmentStatus
    ) -> Enrollment | None:
        current = self._store.get((user_id, course_id))
        if current is None:
            return None
        updated = replace(current, status=status)
        self._store[(user_id, course_id)] = updated
        return updated

    async def enrolled_user_ids(
        self, course_id: UUID, user_ids: Iterable[UUID]
    ) -> set[UUID]:
        return {uid for uid in user_ids if (uid, course_id) in self._store}

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._store.values() if e.course_id == course_id]

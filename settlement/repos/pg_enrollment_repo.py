"""PostgreSQL implementation of EnrollmentRepo.

Uniqueness of (user_id, course_id) is the table's primary key; inserts use
ON CONFLICT DO NOTHING so a concurrent duplicate is a no-op rather than
an IntegrityError that would poison the surrounding transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import EnrollmentRow
from settlement.models.enrollment import Enrollment, EnrollmentStatus


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, (user_id, course_id))
        return None if row is None else _row_to_enrollment(row)

    async def add(self, enrollment: Enrollment) -> bool:
        return bool(await self.add_many([enrollment]))

    async def add_many(self, enrollments: list[Enrollment]) -> list[Enrollment]:
        if not enrollments:
            return []
        stmt = (
            insert(EnrollmentRow)
            .values(
                [
                    {
                        "user_id": e.user_id,
                        "course_id": e.course_id,
                        "status": str(e.status),
                        "created_at": e.created_at,
                    }
                    for e in enrollments
                ]
            )
            .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
            .returning(EnrollmentRow.user_id, EnrollmentRow.course_id)
        )
        # RETURNING only yields rows this statement actually inserted
        inserted = set((await self._session.execute(stmt)).tuples())
        return [e for e in enrollments if (e.user_id, e.course_id) in inserted]

    async def set_status(
        self, user_id: UUID, course_id: UUID, status: EnrollmentStatus
    ) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id, EnrollmentRow.course_id == course_id)
            .values(status=str(status))
            .returning(EnrollmentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_enrollment(row)

    async def enrolled_user_ids(
        self, course_id: UUID, user_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(user_ids)
        if not ids:
            return set()
        stmt = select(EnrollmentRow.user_id).where(
            EnrollmentRow.course_id == course_id, EnrollmentRow.user_id.in_(ids)
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        user_id=row.user_id,
        course_id=row.course_id,
        status=EnrollmentStatus(row.status),
        created_at=row.created_at,
    )

"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from dataclasses import asdict
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import ProgressRow
from settlement.models.progress import Progress


class PgProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> Progress | None:
        row = await self._session.get(ProgressRow, (user_id, course_id))
        if row is None:
            return None
        return Progress(
            user_id=row.user_id,
            course_id=row.course_id,
            enrolled=row.enrolled,
            completed_lessons=row.completed_lessons,
            total_lessons=row.total_lessons,
            total_quizzes=row.total_quizzes,
            attempted_quizzes=row.attempted_quizzes,
            quiz_percent=row.quiz_percent,
            last_quiz_score=row.last_quiz_score,
            last_quiz_passed=row.last_quiz_passed,
            percentage=row.percentage,
            status=row.status,
            last_activity_at=row.last_activity_at,
        )

    async def put(self, progress: Progress) -> None:
        values = asdict(progress)
        stmt = insert(ProgressRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "course_id"],
            set_={k: stmt.excluded[k] for k in values if k not in ("user_id", "course_id")},
        )
        await self._session.execute(stmt)

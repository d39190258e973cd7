"""PostgreSQL implementations of CourseRepo and LessonCompletionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import CourseRow, LessonCompletionRow, LessonRow
from settlement.models.course import Course, Lesson, LessonCompletion


class PgCourseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return None if row is None else _row_to_course(row)

    async def get_by_slug(self, slug: str) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_course(row)

    async def add(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                slug=course.slug,
                title=course.title,
                price=course.price,
                currency=course.currency,
                status=course.status,
                org_id=course.org_id,
                created_by=course.created_by,
            )
        )
        await self._session.flush()

    async def list_all(self) -> list[Course]:
        rows = (await self._session.execute(select(CourseRow))).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return None if row is None else _row_to_lesson(row)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                course_id=lesson.course_id,
                position=lesson.position,
                title=lesson.title,
                content=lesson.content,
            )
        )
        await self._session.flush()

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id == course_id)
            .order_by(LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]


class PgLessonCompletionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, completion: LessonCompletion) -> bool:
        stmt = (
            insert(LessonCompletionRow)
            .values(
                user_id=completion.user_id,
                lesson_id=completion.lesson_id,
                course_id=completion.course_id,
                completed_at=completion.completed_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "lesson_id"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_for(self, user_id: UUID, course_id: UUID) -> list[LessonCompletion]:
        stmt = select(LessonCompletionRow).where(
            LessonCompletionRow.user_id == user_id,
            LessonCompletionRow.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            LessonCompletion(
                user_id=r.user_id,
                lesson_id=r.lesson_id,
                course_id=r.course_id,
                completed_at=r.completed_at,
            )
            for r in rows
        ]


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        price=row.price,
        currency=row.currency,
        status=row.status,
        org_id=row.org_id,
        created_by=row.created_by,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        position=row.position,
        title=row.title,
        content=row.content or "",
    )

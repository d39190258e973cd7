from __future__ import annotations

from typing import Protocol
from uuid import UUID

from settlement.models.course import Course, Lesson
from settlement.repos._memory import SnapshotMixin


class CourseRepo(Protocol):
    async def get_by_id(self, course_id: UUID) -> Course | None: ...
    async def get_by_slug(self, slug: str) -> Course | None: ...
    async def add(self, course: Course) -> None: ...
    async def list_all(self) -> list[Course]: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...


class InMemoryCourseRepo(SnapshotMixin):
    _TABLES = ("_courses", "_lessons")

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._lessons: dict[UUID, Lesson] = {}

    async def get_by_id(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_by_slug(self, slug: str) -> Course | None:
        return next((c for c in self._courses.values() if c.slug == slug), None)

    async def add(self, course: Course) -> None:
        if await self.get_by_slug(course.slug) is not None:
            raise ValueError("slug already exists")
        self._courses[course.id] = course

    async def list_all(self) -> list[Course]:
        return list(self._courses.values())

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        lessons = [l for l in self._lessons.values() if l.course_id == course_id]
        return sorted(lessons, key=lambda l: l.position)

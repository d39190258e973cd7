from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    price: int = 0  # minor currency units
    currency: str = "NGN"
    status: str = "draft"  # draft|published|retired
    org_id: UUID | None = None
    created_by: UUID | None = None

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        price: int = 0,
        currency: str = "NGN",
        org_id: UUID | None = None,
        created_by: UUID | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            price=price,
            currency=currency,
            org_id=org_id,
            created_by=created_by,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    position: int
    title: str
    content: str = ""

    @staticmethod
    def new(*, course_id: UUID, position: int, title: str, content: str = "") -> Lesson:
        return Lesson(
            id=uuid4(), course_id=course_id, position=position, title=title, content=content
        )


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    """A learner marked a lesson done.  Unique per (user, lesson)."""

    user_id: UUID
    lesson_id: UUID
    course_id: UUID
    completed_at: int

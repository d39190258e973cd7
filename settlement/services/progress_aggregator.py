"""Progress Aggregator: rebuild a learner's Progress from source facts.

Progress is a cache.  ``compute_progress`` is a pure, total function of
the course's lessons and quizzes plus the learner's enrollment, lesson
completions and quiz attempts; ``recompute`` gathers those facts inside
one ledger transaction and replaces the stored record wholesale.

The published formula:

    lesson_ratio = completed lessons / total lessons
    quiz_ratio   = mean over every quiz in the course of
                   best attempt score / quiz total points
                   (an unattempted quiz counts 0)

    percentage = 70% lesson_ratio + 30% quiz_ratio    lessons and quizzes
               = 100% lesson_ratio                    lessons only
               = 100% quiz_ratio                      quizzes only
               = 0                                    neither

Arithmetic is exact (fractions) and the result is rounded half-up to an
integer, so identical facts always give byte-identical output.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import asdict
from fractions import Fraction
from typing import Any
from uuid import UUID

from settlement.core.errors import NotFoundError
from settlement.db.ledger import Ledger
from settlement.models.course import Lesson, LessonCompletion
from settlement.models.enrollment import Enrollment
from settlement.models.progress import Progress
from settlement.models.quiz import Quiz, QuizAttempt

logger = logging.getLogger(__name__)

LESSON_WEIGHT = Fraction(7, 10)
QUIZ_WEIGHT = Fraction(3, 10)


def _percent(ratio: Fraction) -> int:
    """Round half-up to a whole percent."""
    return math.floor(ratio * 100 + Fraction(1, 2))


def _quiz_ratio(quiz: Quiz, attempts: list[QuizAttempt]) -> Fraction:
    if not attempts:
        return Fraction(0)
    total = quiz.total_points
    if total <= 0:
        return Fraction(1)
    best = max(a.score for a in attempts)
    return min(Fraction(best, total), Fraction(1))


def compute_progress(
    *,
    user_id: UUID,
    course_id: UUID,
    enrollment: Enrollment | None,
    lessons: Iterable[Lesson],
    completions: Iterable[LessonCompletion],
    quizzes: Iterable[Quiz],
    attempts: Iterable[QuizAttempt],
) -> Progress:
    lesson_ids = {lesson.id for lesson in lessons}
    done = [c for c in completions if c.lesson_id in lesson_ids]
    quiz_list = list(quizzes)
    quiz_ids = {q.id for q in quiz_list}
    history = [a for a in attempts if a.quiz_id in quiz_ids]

    by_quiz: dict[UUID, list[QuizAttempt]] = {q.id: [] for q in quiz_list}
    for attempt in history:
        by_quiz[attempt.quiz_id].append(attempt)

    lesson_ratio = Fraction(len(done), len(lesson_ids)) if lesson_ids else None
    quiz_ratio = (
        sum((_quiz_ratio(q, by_quiz[q.id]) for q in quiz_list), Fraction(0))
        / len(quiz_list)
        if quiz_list
        else None
    )

    if lesson_ratio is not None and quiz_ratio is not None:
        overall = LESSON_WEIGHT * lesson_ratio + QUIZ_WEIGHT * quiz_ratio
    elif lesson_ratio is not None:
        overall = lesson_ratio
    elif quiz_ratio is not None:
        overall = quiz_ratio
    else:
        overall = Fraction(0)
    percentage = _percent(overall)

    latest = max(history, key=lambda a: a.created_at, default=None)
    activity = [c.completed_at for c in done] + [a.created_at for a in history]

    if percentage >= 100:
        status = "completed"
    elif percentage == 0 and not activity:
        status = "not_started"
    else:
        status = "in_progress"

    return Progress(
        user_id=user_id,
        course_id=course_id,
        enrolled=enrollment is not None and enrollment.is_active,
        completed_lessons=len(done),
        total_lessons=len(lesson_ids),
        total_quizzes=len(quiz_list),
        attempted_quizzes=sum(1 for attempts in by_quiz.values() if attempts),
        quiz_percent=_percent(quiz_ratio) if quiz_ratio is not None else 0,
        last_quiz_score=latest.score if latest else None,
        last_quiz_passed=latest.passed if latest else None,
        percentage=percentage,
        status=status,
        last_activity_at=max(activity, default=None),
    )


async def recompute(tx: Ledger, user_id: UUID, course_id: UUID) -> Progress:
    if await tx.courses.get_by_id(course_id) is None:
        raise NotFoundError(f"course {course_id} not found")
    if await tx.users.get_by_id(user_id) is None:
        raise NotFoundError(f"user {user_id} not found")

    progress = compute_progress(
        user_id=user_id,
        course_id=course_id,
        enrollment=await tx.enrollments.get(user_id, course_id),
        lessons=await tx.courses.list_lessons(course_id),
        completions=await tx.completions.list_for(user_id, course_id),
        quizzes=await tx.quizzes.list_by_course(course_id),
        attempts=await tx.attempts.list_for(user_id, course_id),
    )
    await tx.progress.put(progress)
    logger.debug(
        "Recomputed progress user=%s course=%s percentage=%d",
        user_id,
        course_id,
        progress.percentage,
    )
    return progress


# --- Cache (de)serialization ---


def progress_to_dict(progress: Progress) -> dict[str, Any]:
    data = asdict(progress)
    data["user_id"] = str(progress.user_id)
    data["course_id"] = str(progress.course_id)
    return data


def progress_from_dict(data: dict[str, Any]) -> Progress:
    return Progress(
        **{
            **data,
            "user_id": UUID(data["user_id"]),
            "course_id": UUID(data["course_id"]),
        }
    )

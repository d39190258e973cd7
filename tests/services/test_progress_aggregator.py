from __future__ import annotations

import asyncio

import pytest

from settlement.core.errors import NotFoundError
from settlement.models.course import LessonCompletion
from settlement.models.enrollment import Enrollment
from settlement.models.quiz import QuizAttempt
from settlement.services.progress_aggregator import compute_progress
from tests.conftest import NOW, all_correct, make_course, make_lessons, make_quiz, make_user, seed


def _completions(user, lessons, count):
    return [
        LessonCompletion(
            user_id=user.id, lesson_id=lesson.id, course_id=lesson.course_id, completed_at=NOW + i
        )
        for i, lesson in enumerate(lessons[:count])
    ]


def _attempt(user, quiz, score, at=NOW):
    return QuizAttempt.new(
        user_id=user.id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        answers={},
        score=score,
        passed=score >= quiz.passing_score,
        created_at=at,
    )


def _compute(user, course, *, lessons=(), completions=(), quizzes=(), attempts=(), enrolled=True):
    return compute_progress(
        user_id=user.id,
        course_id=course.id,
        enrollment=Enrollment(user_id=user.id, course_id=course.id) if enrolled else None,
        lessons=lessons,
        completions=completions,
        quizzes=quizzes,
        attempts=attempts,
    )


def test_six_of_ten_lessons_and_full_quiz_is_72() -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 10)
    quiz = make_quiz(course, points=(5, 5))
    progress = _compute(
        user,
        course,
        lessons=lessons,
        completions=_completions(user, lessons, 6),
        quizzes=[quiz],
        attempts=[_attempt(user, quiz, 10)],
    )
    # 0.7 * 6/10 + 0.3 * 1.0
    assert progress.percentage == 72
    assert progress.status == "in_progress"
    assert progress.quiz_percent == 100


def test_lessons_only_course_uses_lesson_ratio() -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 3)
    progress = _compute(user, course, lessons=lessons, completions=_completions(user, lessons, 2))
    assert progress.percentage == 67


def test_quizzes_only_course_uses_best_attempt() -> None:
    user, course = make_user(), make_course()
    quiz = make_quiz(course, points=(1, 1, 1, 1))
    progress = _compute(
        user,
        course,
        quizzes=[quiz],
        attempts=[_attempt(user, quiz, 3, NOW), _attempt(user, quiz, 1, NOW + 5)],
    )
    assert progress.percentage == 75
    # Most recent attempt, not the best one
    assert progress.last_quiz_score == 1
    assert progress.last_activity_at == NOW + 5


def test_unattempted_quiz_counts_zero() -> None:
    user, course = make_user(), make_course()
    q1, q2 = make_quiz(course), make_quiz(course)
    progress = _compute(user, course, quizzes=[q1, q2], attempts=[_attempt(user, q1, 2)])
    assert progress.percentage == 50
    assert progress.attempted_quizzes == 1


def test_empty_course_is_not_started() -> None:
    user, course = make_user(), make_course()
    progress = _compute(user, course, enrolled=False)
    assert progress.percentage == 0
    assert progress.status == "not_started"
    assert not progress.enrolled
    assert progress.last_activity_at is None


def test_everything_done_is_completed() -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 2)
    quiz = make_quiz(course, points=(1,))
    progress = _compute(
        user,
        course,
        lessons=lessons,
        completions=_completions(user, lessons, 2),
        quizzes=[quiz],
        attempts=[_attempt(user, quiz, 1)],
    )
    assert progress.percentage == 100
    assert progress.status == "completed"


def test_half_rounds_up() -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 8)
    # 1/8 = 12.5%
    progress = _compute(user, course, lessons=lessons, completions=_completions(user, lessons, 1))
    assert progress.percentage == 13


def test_facts_from_other_courses_are_ignored() -> None:
    user, course, other = make_user(), make_course(), make_course("other")
    lessons = make_lessons(course, 2)
    foreign = make_lessons(other, 2)
    progress = _compute(
        user, course, lessons=lessons, completions=_completions(user, foreign, 2)
    )
    assert progress.completed_lessons == 0


# ---- recompute through the engine ----


def test_recompute_is_idempotent(engine, store) -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 4)
    quiz = make_quiz(course)
    seed(store, users=[user], courses=[course], lessons=lessons, quizzes=[quiz])
    asyncio.run(engine.complete_lesson(user.id, lessons[0].id))
    asyncio.run(engine.submit_quiz(user.id, quiz.id, all_correct(quiz)))

    first = asyncio.run(engine.recompute_progress(user.id, course.id))
    second = asyncio.run(engine.recompute_progress(user.id, course.id))
    assert first == second

    async def stored():
        async with store.transaction() as tx:
            return await tx.progress.get(user.id, course.id)

    assert asyncio.run(stored()) == second


def test_recompute_unknown_course(engine, store) -> None:
    user = make_user()
    seed(store, users=[user])
    with pytest.raises(NotFoundError):
        asyncio.run(engine.recompute_progress(user.id, make_course().id))


def test_complete_lesson_is_idempotent(engine, store) -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 2)
    seed(store, users=[user], courses=[course], lessons=lessons)

    first = asyncio.run(engine.complete_lesson(user.id, lessons[0].id))
    second = asyncio.run(engine.complete_lesson(user.id, lessons[0].id))

    assert first.recorded and not second.recorded
    assert first.progress.percentage == second.progress.percentage == 50


def test_get_progress_reads_through_cache(engine, store, cache) -> None:
    user, course = make_user(), make_course()
    lessons = make_lessons(course, 2)
    seed(store, users=[user], courses=[course], lessons=lessons)

    cold = asyncio.run(engine.get_progress(user.id, course.id))
    assert cold.percentage == 0
    assert cache._store

    # Completing a lesson invalidates the cached entry
    asyncio.run(engine.complete_lesson(user.id, lessons[0].id))
    warm = asyncio.run(engine.get_progress(user.id, course.id))
    assert warm.percentage == 50
    assert asyncio.run(engine.get_progress(user.id, course.id)) == warm


def test_enrollment_invalidates_cached_progress(engine, store) -> None:
    user, course = make_user(), make_course()
    seed(store, users=[user], courses=[course])

    assert not asyncio.run(engine.get_progress(user.id, course.id)).enrolled
    asyncio.run(engine.enroll_user(user.id, course.id))
    assert asyncio.run(engine.get_progress(user.id, course.id)).enrolled

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from fractions import Fraction
from typing import Any
from uuid import UUID, uuid4


class QuestionType(StrEnum):
    MULTIPLE_CHOICE = "multiple_choice"
    MULTIPLE_SELECT = "multiple_select"
    TRUE_OR_FALSE = "true_or_false"
    TYPE_ANSWER = "type_answer"


# Share of total points needed to pass when a quiz is created without
# an explicit passing score.
DEFAULT_PASSING_RATIO = Fraction(7, 10)


@dataclass(frozen=True, slots=True)
class Question:
    id: UUID
    prompt: str
    type: QuestionType
    correct_answer: Any  # str | bool | tuple[str, ...] for multiple_select
    options: tuple[str, ...] = ()
    points: int = 1

    @staticmethod
    def new(
        *,
        prompt: str,
        type: QuestionType,
        correct_answer: Any,
        options: tuple[str, ...] = (),
        points: int = 1,
    ) -> Question:
        if type == QuestionType.MULTIPLE_SELECT and isinstance(correct_answer, list):
            correct_answer = tuple(correct_answer)
        return Question(
            id=uuid4(),
            prompt=prompt,
            type=type,
            correct_answer=correct_answer,
            options=options,
            points=points,
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    passing_score: int
    questions: tuple[Question, ...] = ()
    lesson_id: UUID | None = None

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        questions: tuple[Question, ...],
        passing_score: int | None = None,
        lesson_id: UUID | None = None,
    ) -> Quiz:
        if passing_score is None:
            total = sum(q.points for q in questions)
            passing_score = math.ceil(total * DEFAULT_PASSING_RATIO)
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            passing_score=passing_score,
            questions=questions,
            lesson_id=lesson_id,
        )


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """One graded submission.  Immutable; every attempt is retained."""

    id: UUID
    user_id: UUID
    quiz_id: UUID
    course_id: UUID
    answers: dict[str, Any]
    score: int
    passed: bool
    created_at: int

    @staticmethod
    def new(
        *,
        user_id: UUID,
        quiz_id: UUID,
        course_id: UUID,
        answers: dict[str, Any],
        score: int,
        passed: bool,
        created_at: int,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            user_id=user_id,
            quiz_id=quiz_id,
            course_id=course_id,
            answers=dict(answers),
            score=score,
            passed=passed,
            created_at=created_at,
        )

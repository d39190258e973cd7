"""Quiz Grading Engine.

``grade`` is a pure function of (quiz, answers).  ``record_attempt``
wraps it with the one write the engine makes: an immutable QuizAttempt.

Answers map question id (as a string) to the submitted value.  Values
are compared per question type:

  multiple_choice, true_or_false, type_answer
      exact value equality, type included (True never equals 1,
      "Paris" never equals "paris")
  multiple_select
      the submitted selection and the correct selection compared as
      sets: order does not matter, every correct option and nothing
      else must be chosen

A missing answer, or one of the wrong shape, is simply incorrect.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from settlement.core.errors import InvalidInputError, NotFoundError
from settlement.db.ledger import Ledger
from settlement.models.quiz import Question, QuestionType, Quiz, QuizAttempt

logger = logging.getLogger(__name__)


def parse_answers(raw: Any) -> dict[str, Any]:
    """Accept a mapping or its JSON text; anything else is invalid input."""
    if isinstance(raw, str | bytes):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InvalidInputError("answers is not valid JSON") from None
    if not isinstance(raw, Mapping):
        raise InvalidInputError("answers must be a mapping of question id to answer")
    if not all(isinstance(k, str) for k in raw):
        raise InvalidInputError("answer keys must be question ids")
    return dict(raw)


def _as_selection(value: Any) -> frozenset | None:
    if not isinstance(value, list | tuple | set | frozenset):
        return None
    try:
        return frozenset(value)
    except TypeError:  # unhashable members
        return None


def is_correct(question: Question, submitted: Any) -> bool:
    if question.type == QuestionType.MULTIPLE_SELECT:
        chosen = _as_selection(submitted)
        return chosen is not None and chosen == _as_selection(question.correct_answer)
    return type(submitted) is type(question.correct_answer) and submitted == question.correct_answer


def grade(quiz: Quiz, answers: Mapping[str, Any]) -> tuple[int, bool]:
    """Return ``(score, passed)``."""
    score = 0
    for question in quiz.questions:
        key = str(question.id)
        if key in answers and is_correct(question, answers[key]):
            score += question.points
    return score, score >= quiz.passing_score


async def record_attempt(
    tx: Ledger,
    *,
    user_id: UUID,
    quiz_id: UUID,
    answers: Any,
    now: int,
) -> tuple[Quiz, QuizAttempt]:
    quiz = await tx.quizzes.get(quiz_id)
    if quiz is None:
        raise NotFoundError(f"quiz {quiz_id} not found")
    if await tx.users.get_by_id(user_id) is None:
        raise NotFoundError(f"user {user_id} not found")
    parsed = parse_answers(answers)

    score, passed = grade(quiz, parsed)
    attempt = QuizAttempt.new(
        user_id=user_id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        answers=parsed,
        score=score,
        passed=passed,
        created_at=now,
    )
    await tx.attempts.add(attempt)
    logger.info(
        "Graded quiz=%s user=%s score=%d/%d passed=%s",
        quiz.id,
        user_id,
        score,
        quiz.total_points,
        passed,
    )
    return quiz, attempt

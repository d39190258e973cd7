"""Quiz endpoints: fetch a quiz for taking, submit answers for grading.

Answers are a mapping of question id to the learner's answer, either as
a JSON object or as a JSON-encoded string of one.
"""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from settlement.api.dependencies import require_user
from settlement.api.errors import to_http
from settlement.api.progress import ProgressOut, progress_out
from settlement.core.errors import SettlementError
from settlement.models.principal import Principal
from settlement.models.quiz import Quiz
from settlement.services.catalog_service import catalog_service
from settlement.services.settlement_engine import settlement_engine

router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


class QuestionOut(BaseModel):
    id: str
    prompt: str
    type: str
    options: list[str]
    points: int


class QuizOut(BaseModel):
    id: str
    course_id: str
    title: str
    passing_score: int
    total_points: int
    questions: list[QuestionOut]


class SubmitIn(BaseModel):
    answers: dict[str, Any] | str


class SubmissionOut(BaseModel):
    attempt_id: str
    score: int
    total_points: int
    passed: bool
    progress: ProgressOut | None


def quiz_out(quiz: Quiz) -> QuizOut:
    # Correct answers stay server-side
    return QuizOut(
        id=str(quiz.id),
        course_id=str(quiz.course_id),
        title=quiz.title,
        passing_score=quiz.passing_score,
        total_points=quiz.total_points,
        questions=[
            QuestionOut(
                id=str(q.id),
                prompt=q.prompt,
                type=str(q.type),
                options=list(q.options),
                points=q.points,
            )
            for q in quiz.questions
        ],
    )


@router.get("/{quiz_id}", response_model=QuizOut)
async def get_quiz(
    quiz_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
) -> QuizOut:
    try:
        quiz = await catalog_service.get_quiz(quiz_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    return quiz_out(quiz)


@router.post(
    "/{quiz_id}/submit",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_quiz(
    quiz_id: UUID,
    body: SubmitIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> SubmissionOut:
    try:
        submission = await settlement_engine.submit_quiz(
            principal.user_id, quiz_id, body.answers
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return SubmissionOut(
        attempt_id=str(submission.attempt.id),
        score=submission.score,
        total_points=submission.total_points,
        passed=submission.passed,
        progress=progress_out(submission.progress) if submission.progress else None,
    )

"""Learner progress endpoints.

GET  /v1/progress/{course_id}
  read-through cache: hit -> return; miss -> recompute from the ledger,
  populate the cache (300s TTL), return.
POST /v1/progress/{course_id}/recompute
  force a rebuild from source facts; invalidates the cached entry.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from settlement.api.dependencies import require_user
from settlement.api.errors import to_http
from settlement.core.errors import SettlementError
from settlement.models.principal import Principal
from settlement.models.progress import Progress
from settlement.services.settlement_engine import settlement_engine

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class ProgressOut(BaseModel):
    user_id: str
    course_id: str
    enrolled: bool
    percentage: int
    status: str
    completed_lessons: int
    total_lessons: int
    attempted_quizzes: int
    total_quizzes: int
    quiz_percent: int
    last_quiz_score: int | None
    last_quiz_passed: bool | None
    last_activity_at: int | None


def progress_out(progress: Progress) -> ProgressOut:
    return ProgressOut(
        user_id=str(progress.user_id),
        course_id=str(progress.course_id),
        enrolled=progress.enrolled,
        percentage=progress.percentage,
        status=progress.status,
        completed_lessons=progress.completed_lessons,
        total_lessons=progress.total_lessons,
        attempted_quizzes=progress.attempted_quizzes,
        total_quizzes=progress.total_quizzes,
        quiz_percent=progress.quiz_percent,
        last_quiz_score=progress.last_quiz_score,
        last_quiz_passed=progress.last_quiz_passed,
        last_activity_at=progress.last_activity_at,
    )


@router.get("/{course_id}", response_model=ProgressOut)
async def get_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> ProgressOut:
    try:
        progress = await settlement_engine.get_progress(principal.user_id, course_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    return progress_out(progress)


@router.post("/{course_id}/recompute", response_model=ProgressOut)
async def recompute_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> ProgressOut:
    try:
        progress = await settlement_engine.recompute_progress(principal.user_id, course_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    return progress_out(progress)

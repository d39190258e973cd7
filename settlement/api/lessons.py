"""Lesson endpoints: mark a lesson complete, search lesson text."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from settlement.api.dependencies import require_user
from settlement.api.errors import to_http
from settlement.api.progress import ProgressOut, progress_out
from settlement.core.errors import SettlementError
from settlement.models.principal import Principal
from settlement.services.catalog_service import catalog_service
from settlement.services.settlement_engine import settlement_engine

router = APIRouter(prefix="/v1/lessons", tags=["lessons"])


class CompletionOut(BaseModel):
    lesson_id: str
    recorded: bool
    progress: ProgressOut


class SearchHitOut(BaseModel):
    lesson_id: str | None
    course_id: str | None
    title: str | None
    score: float
    snippet: str


# Declared before /{lesson_id}/... so "search" is never taken for an id
@router.get("/search", response_model=list[SearchHitOut])
async def search_lessons(
    _principal: Annotated[Principal, Depends(require_user)],
    q: Annotated[str, Query(min_length=1)],
    k: Annotated[int, Query(ge=1, le=50)] = 5,
    course_id: UUID | None = None,
) -> list[SearchHitOut]:
    matches = await catalog_service.search_lessons(q, k=k, course_id=course_id)
    return [
        SearchHitOut(
            lesson_id=m.tags.get("lesson_id"),
            course_id=m.tags.get("course_id"),
            title=m.tags.get("title"),
            score=m.score,
            snippet=m.snippet,
        )
        for m in matches
    ]


@router.post(
    "/{lesson_id}/complete",
    response_model=CompletionOut,
    status_code=status.HTTP_201_CREATED,
)
async def complete_lesson(
    lesson_id: UUID,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
) -> CompletionOut:
    try:
        result = await settlement_engine.complete_lesson(principal.user_id, lesson_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    if not result.recorded:
        response.status_code = status.HTTP_200_OK
    return CompletionOut(
        lesson_id=str(lesson_id),
        recorded=result.recorded,
        progress=progress_out(result.progress),
    )

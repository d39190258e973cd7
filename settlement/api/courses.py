"""Course catalog and direct enrollment endpoints.

  POST /v1/courses                               create a course (caller is its author)
  GET  /v1/courses                               list courses
  POST /v1/courses/{course_id}/lessons           append a lesson (author only)
  POST /v1/courses/{course_id}/quizzes           add a quiz (author only)
  POST /v1/courses/{course_id}/lessons/draft     draft lesson text (author only)
  POST /v1/courses/{course_id}/quizzes/generate  quiz from a lesson (author only)
  POST /v1/courses/{course_id}/enroll            enroll the caller

Enrolling twice is not an error: the second call answers 200 with the
existing record and created=false.  Pass ?strict=true to get 409 instead.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from settlement.api.dependencies import require_user
from settlement.api.errors import to_http
from settlement.api.quizzes import QuizOut, quiz_out
from settlement.core.errors import SettlementError
from settlement.models.principal import Principal
from settlement.services.catalog_service import catalog_service
from settlement.services.settlement_engine import settlement_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseIn(BaseModel):
    slug: str
    title: str
    price: int = 0
    currency: str = "NGN"
    org_id: UUID | None = None


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    price: int
    currency: str
    status: str
    org_id: str | None


class LessonIn(BaseModel):
    title: str
    content: str = ""


class LessonOut(BaseModel):
    id: str
    course_id: str
    position: int
    title: str


class QuizIn(BaseModel):
    title: str
    questions: list[dict[str, Any]] = Field(min_length=1)
    passing_score: int | None = None
    lesson_id: UUID | None = None


class LessonDraftIn(BaseModel):
    topic: str = Field(min_length=1)
    level: str = "beginner"
    reference_texts: list[str] = Field(default_factory=list)


class LessonDraftOut(BaseModel):
    course_id: str
    topic: str
    content: str


class GenerateQuizIn(BaseModel):
    lesson_id: UUID
    count: int = Field(default=5, ge=1, le=20)
    title: str | None = None
    passing_score: int | None = None


class EnrollmentOut(BaseModel):
    user_id: str
    course_id: str
    status: str
    created_at: int
    created: bool


def _course_out(course) -> CourseOut:
    return CourseOut(
        id=str(course.id),
        slug=course.slug,
        title=course.title,
        price=course.price,
        currency=course.currency,
        status=course.status,
        org_id=str(course.org_id) if course.org_id else None,
    )


async def _require_author(course_id: UUID, principal: Principal) -> None:
    try:
        course = await catalog_service.get_course(course_id)
    except SettlementError as exc:
        raise to_http(exc) from None
    if course.created_by != principal.user_id and not principal.is_platform_admin():
        logger.warning(
            "Access denied: user=%s is not the author of course=%s",
            principal.user_id,
            course_id,
        )
        raise HTTPException(status_code=403, detail="Only the course author can edit it")


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> CourseOut:
    try:
        course = await catalog_service.create_course(
            created_by=principal.user_id,
            slug=body.slug,
            title=body.title,
            price=body.price,
            currency=body.currency,
            org_id=body.org_id,
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return _course_out(course)


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
) -> list[CourseOut]:
    return [_course_out(c) for c in await catalog_service.list_courses()]


@router.post(
    "/{course_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_lesson(
    course_id: UUID,
    body: LessonIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> LessonOut:
    await _require_author(course_id, principal)
    try:
        lesson = await catalog_service.create_lesson(course_id, body.title, body.content)
    except SettlementError as exc:
        raise to_http(exc) from None
    return LessonOut(
        id=str(lesson.id),
        course_id=str(lesson.course_id),
        position=lesson.position,
        title=lesson.title,
    )


@router.post(
    "/{course_id}/quizzes",
    response_model=QuizOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_quiz(
    course_id: UUID,
    body: QuizIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> QuizOut:
    await _require_author(course_id, principal)
    try:
        quiz = await catalog_service.create_quiz(
            course_id,
            body.title,
            body.questions,
            passing_score=body.passing_score,
            lesson_id=body.lesson_id,
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return quiz_out(quiz)


@router.post("/{course_id}/lessons/draft", response_model=LessonDraftOut)
async def draft_lesson(
    course_id: UUID,
    body: LessonDraftIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> LessonDraftOut:
    await _require_author(course_id, principal)
    try:
        content = await catalog_service.draft_lesson(
            course_id, body.topic, body.level, body.reference_texts
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return LessonDraftOut(course_id=str(course_id), topic=body.topic, content=content)


@router.post(
    "/{course_id}/quizzes/generate",
    response_model=QuizOut,
    status_code=status.HTTP_201_CREATED,
)
async def generate_quiz(
    course_id: UUID,
    body: GenerateQuizIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> QuizOut:
    await _require_author(course_id, principal)
    try:
        quiz = await catalog_service.generate_quiz(
            course_id,
            body.lesson_id,
            count=body.count,
            title=body.title,
            passing_score=body.passing_score,
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    return quiz_out(quiz)


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
    strict: bool = False,
) -> EnrollmentOut:
    try:
        result = await settlement_engine.enroll_user(
            principal.user_id, course_id, strict=strict
        )
    except SettlementError as exc:
        raise to_http(exc) from None
    if not result.created:
        response.status_code = status.HTTP_200_OK
    enrollment = result.enrollment
    return EnrollmentOut(
        user_id=str(enrollment.user_id),
        course_id=str(enrollment.course_id),
        status=str(enrollment.status),
        created_at=enrollment.created_at,
        created=result.created,
    )

"""Catalog: organizations, groups, courses, lessons and quizzes.

Plain create/read operations over the ledger.  The one behavior with a
contract attached is lesson creation: the lesson is committed first and
then handed to the search collaborator, and an indexing failure is
logged and swallowed so content creation never depends on search.
Lesson drafts and generated quizzes go through the content collaborator;
a generated quiz is stored exactly like an authored one.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from settlement.core.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from settlement.db.ledger import LedgerStore, ledger_store
from settlement.models.course import Course, Lesson
from settlement.models.organization import Group, GroupMember, Organization, OrgMembership
from settlement.models.quiz import Question, QuestionType, Quiz
from settlement.services.content_generator import ContentGenerator, content_generator
from settlement.services.search_index import SearchIndex, SearchMatch, search_index
from settlement.services.transactions import atomic

logger = logging.getLogger(__name__)

ORG_ROLES = ("owner", "admin", "instructor", "learner")


def _question_from_spec(data: Mapping[str, Any]) -> Question:
    try:
        qtype = QuestionType(data.get("type", QuestionType.MULTIPLE_CHOICE))
    except ValueError:
        raise InvalidInputError(f"unknown question type {data.get('type')!r}") from None
    prompt = data.get("prompt") or data.get("question")
    if not prompt:
        raise InvalidInputError("question prompt is required")
    if "correct_answer" not in data:
        raise InvalidInputError("question correct_answer is required")
    points = data.get("points", 1)
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidInputError("question points must be a positive integer")
    correct = data["correct_answer"]
    if qtype == QuestionType.MULTIPLE_SELECT and not isinstance(correct, list | tuple):
        raise InvalidInputError("multiple_select correct_answer must be a list")
    return Question.new(
        prompt=prompt,
        type=qtype,
        correct_answer=correct,
        options=tuple(data.get("options") or ()),
        points=points,
    )


class CatalogService:
    def __init__(
        self,
        store: LedgerStore,
        search: SearchIndex,
        content: ContentGenerator = content_generator,
    ) -> None:
        self._store = store
        self._search = search
        self._content = content

    # --- organizations ---

    async def create_org(self, owner_id: UUID, name: str, slug: str) -> Organization:
        async with atomic(self._store) as tx:
            if await tx.orgs.get_by_slug(slug) is not None:
                raise ConflictError(f"organization slug {slug!r} already taken")
            org = Organization.new(name=name, slug=slug)
            await tx.orgs.add(org)
            await tx.memberships.add(
                OrgMembership(org_id=org.id, user_id=owner_id, org_role="owner")
            )
        logger.info("Created org=%s slug=%s owner=%s", org.id, slug, owner_id)
        return org

    async def add_org_member(self, org_id: UUID, user_id: UUID, org_role: str) -> OrgMembership:
        if org_role not in ORG_ROLES:
            raise InvalidInputError(f"invalid org_role {org_role!r}")
        async with atomic(self._store) as tx:
            if await tx.orgs.get_by_id(org_id) is None:
                raise NotFoundError(f"organization {org_id} not found")
            if await tx.users.get_by_id(user_id) is None:
                raise NotFoundError(f"user {user_id} not found")
            if await tx.memberships.get(org_id, user_id) is not None:
                raise ConflictError("user is already a member")
            membership = OrgMembership(org_id=org_id, user_id=user_id, org_role=org_role)
            await tx.memberships.add(membership)
        return membership

    async def list_org_members(self, org_id: UUID) -> list[OrgMembership]:
        async with atomic(self._store) as tx:
            return await tx.memberships.list_by_org(org_id)

    async def create_group(self, org_id: UUID, name: str) -> Group:
        async with atomic(self._store) as tx:
            if await tx.orgs.get_by_id(org_id) is None:
                raise NotFoundError(f"organization {org_id} not found")
            group = Group.new(org_id=org_id, name=name)
            await tx.groups.add(group)
        return group

    async def add_group_member(self, org_id: UUID, group_id: UUID, user_id: UUID) -> bool:
        """Returns False when the user was already in the group."""
        async with atomic(self._store) as tx:
            group = await tx.groups.get(group_id)
            if group is None or group.org_id != org_id:
                raise NotFoundError(f"group {group_id} not found")
            if await tx.memberships.get(org_id, user_id) is None:
                raise InvalidStateError("user is not a member of the organization")
            return await tx.groups.add_member(GroupMember(group_id=group_id, user_id=user_id))

    # --- courses ---

    async def create_course(
        self,
        *,
        created_by: UUID,
        slug: str,
        title: str,
        price: int = 0,
        currency: str = "NGN",
        org_id: UUID | None = None,
    ) -> Course:
        if price < 0:
            raise InvalidInputError("price must not be negative")
        async with atomic(self._store) as tx:
            if await tx.courses.get_by_slug(slug) is not None:
                raise ConflictError(f"course slug {slug!r} already taken")
            if org_id is not None and await tx.orgs.get_by_id(org_id) is None:
                raise NotFoundError(f"organization {org_id} not found")
            course = Course.new(
                slug=slug,
                title=title,
                price=price,
                currency=currency,
                org_id=org_id,
                created_by=created_by,
            )
            await tx.courses.add(course)
        logger.info("Created course=%s slug=%s", course.id, slug)
        return course

    async def get_course(self, course_id: UUID) -> Course:
        async with atomic(self._store) as tx:
            course = await tx.courses.get_by_id(course_id)
        if course is None:
            raise NotFoundError(f"course {course_id} not found")
        return course

    async def list_courses(self) -> list[Course]:
        async with atomic(self._store) as tx:
            return await tx.courses.list_all()

    async def create_lesson(self, course_id: UUID, title: str, content: str) -> Lesson:
        async with atomic(self._store) as tx:
            course = await tx.courses.get_by_id(course_id)
            if course is None:
                raise NotFoundError(f"course {course_id} not found")
            existing = await tx.courses.list_lessons(course_id)
            position = max((lesson.position for lesson in existing), default=0) + 1
            lesson = Lesson.new(
                course_id=course_id, position=position, title=title, content=content
            )
            await tx.courses.add_lesson(lesson)

        try:
            await self._search.index_text(
                f"{title}\n\n{content}",
                {
                    "lesson_id": str(lesson.id),
                    "course_id": str(course_id),
                    "title": title,
                    "course_title": course.title,
                },
            )
        except Exception:
            logger.exception("Indexing lesson=%s failed; lesson kept", lesson.id)
        return lesson

    async def create_quiz(
        self,
        course_id: UUID,
        title: str,
        questions: list[Mapping[str, Any]],
        *,
        passing_score: int | None = None,
        lesson_id: UUID | None = None,
    ) -> Quiz:
        if not questions:
            raise InvalidInputError("a quiz needs at least one question")
        built = tuple(_question_from_spec(q) for q in questions)
        total = sum(q.points for q in built)
        if passing_score is not None and not 0 <= passing_score <= total:
            raise InvalidInputError(f"passing_score must be between 0 and {total}")

        async with atomic(self._store) as tx:
            if await tx.courses.get_by_id(course_id) is None:
                raise NotFoundError(f"course {course_id} not found")
            if lesson_id is not None:
                lesson = await tx.courses.get_lesson(lesson_id)
                if lesson is None or lesson.course_id != course_id:
                    raise NotFoundError(f"lesson {lesson_id} not found in course")
            quiz = Quiz.new(
                course_id=course_id,
                title=title,
                questions=built,
                passing_score=passing_score,
                lesson_id=lesson_id,
            )
            await tx.quizzes.add(quiz)
        logger.info(
            "Created quiz=%s course=%s questions=%d passing=%d/%d",
            quiz.id,
            course_id,
            len(built),
            quiz.passing_score,
            total,
        )
        return quiz

    async def get_quiz(self, quiz_id: UUID) -> Quiz:
        async with atomic(self._store) as tx:
            quiz = await tx.quizzes.get(quiz_id)
        if quiz is None:
            raise NotFoundError(f"quiz {quiz_id} not found")
        return quiz

    # --- generated content ---

    async def draft_lesson(
        self,
        course_id: UUID,
        topic: str,
        level: str,
        reference_texts: list[str] | None = None,
    ) -> str:
        """Draft lesson text for an author to edit.  Nothing is stored.

        Without explicit references, the course's own lessons closest to
        the topic are used.
        """
        course = await self.get_course(course_id)
        if not reference_texts:
            matches = await self._search.search_similar(
                topic, 3, {"course_id": str(course_id)}
            )
            reference_texts = [m.snippet for m in matches]
        text = await self._content.generate_lesson_text(
            topic, level, reference_texts, course.title
        )
        logger.info(
            "Drafted lesson course=%s topic=%r references=%d",
            course_id,
            topic,
            len(reference_texts),
        )
        return text

    async def generate_quiz(
        self,
        course_id: UUID,
        lesson_id: UUID,
        *,
        count: int = 5,
        title: str | None = None,
        passing_score: int | None = None,
    ) -> Quiz:
        async with atomic(self._store) as tx:
            lesson = await tx.courses.get_lesson(lesson_id)
        if lesson is None or lesson.course_id != course_id:
            raise NotFoundError(f"lesson {lesson_id} not found in course")
        questions = await self._content.generate_quiz_questions(
            f"{lesson.title}\n\n{lesson.content}", count
        )
        return await self.create_quiz(
            course_id,
            title or f"{lesson.title} quiz",
            questions,
            passing_score=passing_score,
            lesson_id=lesson_id,
        )

    async def search_lessons(
        self, query: str, *, k: int = 5, course_id: UUID | None = None
    ) -> list[SearchMatch]:
        filter_tags = {"course_id": str(course_id)} if course_id else None
        return await self._search.search_similar(query, k, filter_tags)


catalog_service = CatalogService(ledger_store, search_index, content_generator)

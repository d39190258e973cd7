"""PostgreSQL implementations of QuizRepo and QuizAttemptRepo.

Questions are stored inline on the quiz row as a JSONB array; they are
only ever read and written together with their quiz.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.tables import QuizAttemptRow, QuizRow
from settlement.models.quiz import Question, QuestionType, Quiz, QuizAttempt


class PgQuizRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, quiz_id: UUID) -> Quiz | None:
        row = await self._session.get(QuizRow, quiz_id)
        return None if row is None else _row_to_quiz(row)

    async def add(self, quiz: Quiz) -> None:
        self._session.add(
            QuizRow(
                id=quiz.id,
                course_id=quiz.course_id,
                lesson_id=quiz.lesson_id,
                title=quiz.title,
                passing_score=quiz.passing_score,
                questions=[_question_to_json(q) for q in quiz.questions],
            )
        )
        await self._session.flush()

    async def list_by_course(self, course_id: UUID) -> list[Quiz]:
        stmt = select(QuizRow).where(QuizRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_quiz(r) for r in rows]


class PgQuizAttemptRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, attempt: QuizAttempt) -> None:
        self._session.add(
            QuizAttemptRow(
                id=attempt.id,
                user_id=attempt.user_id,
                quiz_id=attempt.quiz_id,
                course_id=attempt.course_id,
                answers=attempt.answers,
                score=attempt.score,
                passed=attempt.passed,
                created_at=attempt.created_at,
            )
        )
        await self._session.flush()

    async def list_for(self, user_id: UUID, course_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.user_id == user_id,
                QuizAttemptRow.course_id == course_id,
            )
            .order_by(QuizAttemptRow.created_at, QuizAttemptRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            QuizAttempt(
                id=r.id,
                user_id=r.user_id,
                quiz_id=r.quiz_id,
                course_id=r.course_id,
                answers=dict(r.answers),
                score=r.score,
                passed=r.passed,
                created_at=r.created_at,
            )
            for r in rows
        ]


def _question_to_json(q: Question) -> dict[str, Any]:
    correct = list(q.correct_answer) if isinstance(q.correct_answer, tuple) else q.correct_answer
    return {
        "id": str(q.id),
        "prompt": q.prompt,
        "type": str(q.type),
        "options": list(q.options),
        "correct_answer": correct,
        "points": q.points,
    }


def _question_from_json(data: dict[str, Any]) -> Question:
    qtype = QuestionType(data["type"])
    correct = data["correct_answer"]
    if qtype == QuestionType.MULTIPLE_SELECT and isinstance(correct, list):
        correct = tuple(correct)
    return Question(
        id=UUID(data["id"]),
        prompt=data["prompt"],
        type=qtype,
        correct_answer=correct,
        options=tuple(data.get("options") or ()),
        points=int(data.get("points", 1)),
    )


def _row_to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        passing_score=row.passing_score,
        questions=tuple(_question_from_json(q) for q in row.questions or []),
        lesson_id=row.lesson_id,
    )

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Progress:
    """Derived cache of a learner's standing in one course.

    Rebuilt from enrollment, lesson completions and quiz attempts on every
    relevant event; never edited by hand and never a source of truth.
    """

    user_id: UUID
    course_id: UUID
    enrolled: bool
    completed_lessons: int
    total_lessons: int
    total_quizzes: int
    attempted_quizzes: int
    quiz_percent: int  # mean of best attempt per quiz, unattempted = 0
    last_quiz_score: int | None
    last_quiz_passed: bool | None
    percentage: int
    status: str  # not_started|in_progress|completed
    last_activity_at: int | None = None

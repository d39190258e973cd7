from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

import pytest

from settlement.core.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from settlement.models.quiz import QuestionType
from settlement.services.catalog_service import CatalogService
from settlement.services.content_generator import TemplateContentGenerator
from settlement.services.search_index import InMemorySearchIndex
from tests.conftest import make_user, seed


@pytest.fixture
def search() -> InMemorySearchIndex:
    return InMemorySearchIndex()


@pytest.fixture
def catalog(store, search) -> CatalogService:
    return CatalogService(store, search, TemplateContentGenerator())


@pytest.fixture
def author(store):
    user = make_user("author@example.com")
    seed(store, users=[user])
    return user


def _course(catalog, author, slug="biology-101"):
    return asyncio.run(catalog.create_course(created_by=author.id, slug=slug, title="Biology"))


def test_lessons_are_positioned_and_indexed(catalog, author, search) -> None:
    course = _course(catalog, author)
    first = asyncio.run(catalog.create_lesson(course.id, "Cells", "The cell is the unit of life"))
    second = asyncio.run(
        catalog.create_lesson(course.id, "Photosynthesis", "Plants turn light into sugar")
    )

    assert (first.position, second.position) == (1, 2)
    hits = asyncio.run(catalog.search_lessons("light sugar", course_id=course.id))
    assert [h.tags["lesson_id"] for h in hits] == [str(second.id)]
    assert hits[0].tags["course_title"] == "Biology"


def test_search_filters_by_course(catalog, author) -> None:
    bio = _course(catalog, author)
    chem = _course(catalog, author, slug="chemistry-101")
    asyncio.run(catalog.create_lesson(bio.id, "Energy", "energy in cells"))
    asyncio.run(catalog.create_lesson(chem.id, "Energy", "energy in reactions"))

    assert len(asyncio.run(catalog.search_lessons("energy"))) == 2
    only_chem = asyncio.run(catalog.search_lessons("energy", course_id=chem.id))
    assert [h.tags["course_id"] for h in only_chem] == [str(chem.id)]


def test_indexing_failure_keeps_the_lesson(
    catalog, author, search, store, monkeypatch: pytest.MonkeyPatch, caplog
) -> None:
    course = _course(catalog, author)

    async def broken(*_args):
        raise RuntimeError("index offline")

    monkeypatch.setattr(search, "index_text", broken)

    with caplog.at_level(logging.ERROR, logger="settlement.services.catalog_service"):
        lesson = asyncio.run(catalog.create_lesson(course.id, "Cells", "text"))

    assert "Indexing lesson" in caplog.text
    assert store._ledger.courses._lessons[lesson.id] == lesson


def test_duplicate_course_slug_conflicts(catalog, author) -> None:
    _course(catalog, author)
    with pytest.raises(ConflictError):
        _course(catalog, author)


def test_negative_price_rejected(catalog, author) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(
            catalog.create_course(created_by=author.id, slug="x", title="X", price=-1)
        )


def test_quiz_defaults_passing_score(catalog, author) -> None:
    course = _course(catalog, author)
    quiz = asyncio.run(
        catalog.create_quiz(
            course.id,
            "Checkpoint",
            [
                {"prompt": "Pick", "type": "multiple_select", "correct_answer": ["a", "b"], "points": 2},
                {"prompt": "True?", "type": "true_or_false", "correct_answer": True},
                {"question": "Name it", "type": "type_answer", "correct_answer": "ATP"},
            ],
        )
    )
    assert quiz.total_points == 4
    assert quiz.passing_score == 3
    assert quiz.questions[0].type == QuestionType.MULTIPLE_SELECT
    assert quiz.questions[0].correct_answer == ("a", "b")
    assert quiz.questions[2].prompt == "Name it"


@pytest.mark.parametrize(
    "questions",
    [
        [],
        [{"prompt": "?", "type": "essay", "correct_answer": "x"}],
        [{"type": "multiple_choice", "correct_answer": "x"}],
        [{"prompt": "?", "type": "multiple_choice"}],
        [{"prompt": "?", "correct_answer": "x", "points": 0}],
        [{"prompt": "?", "correct_answer": "x", "points": True}],
        [{"prompt": "?", "type": "multiple_select", "correct_answer": "a"}],
    ],
)
def test_quiz_validation(catalog, author, questions) -> None:
    course = _course(catalog, author)
    with pytest.raises(InvalidInputError):
        asyncio.run(catalog.create_quiz(course.id, "Q", questions))


def test_quiz_passing_score_bounded_by_total(catalog, author) -> None:
    course = _course(catalog, author)
    with pytest.raises(InvalidInputError):
        asyncio.run(
            catalog.create_quiz(
                course.id, "Q", [{"prompt": "?", "correct_answer": "a"}], passing_score=2
            )
        )


def test_quiz_lesson_must_belong_to_course(catalog, author) -> None:
    bio = _course(catalog, author)
    chem = _course(catalog, author, slug="chemistry-101")
    lesson = asyncio.run(catalog.create_lesson(chem.id, "Atoms", "protons"))
    with pytest.raises(NotFoundError):
        asyncio.run(
            catalog.create_quiz(
                bio.id, "Q", [{"prompt": "?", "correct_answer": "a"}], lesson_id=lesson.id
            )
        )


def test_org_creator_becomes_owner(catalog, author) -> None:
    org = asyncio.run(catalog.create_org(author.id, "Acme", "acme"))
    (membership,) = asyncio.run(catalog.list_org_members(org.id))
    assert membership.user_id == author.id
    assert membership.org_role == "owner"

    with pytest.raises(ConflictError):
        asyncio.run(catalog.create_org(author.id, "Acme 2", "acme"))


def test_group_members_must_belong_to_org(catalog, author, store) -> None:
    learner = make_user("learner2@example.com")
    seed(store, users=[learner])
    org = asyncio.run(catalog.create_org(author.id, "Acme", "acme"))
    group = asyncio.run(catalog.create_group(org.id, "Cohort"))

    with pytest.raises(InvalidStateError):
        asyncio.run(catalog.add_group_member(org.id, group.id, learner.id))

    asyncio.run(catalog.add_org_member(org.id, learner.id, "learner"))
    assert asyncio.run(catalog.add_group_member(org.id, group.id, learner.id)) is True
    assert asyncio.run(catalog.add_group_member(org.id, group.id, learner.id)) is False


def test_add_org_member_validates_role(catalog, author) -> None:
    org = asyncio.run(catalog.create_org(author.id, "Acme", "acme"))
    with pytest.raises(InvalidInputError):
        asyncio.run(catalog.add_org_member(org.id, author.id, "superuser"))
    with pytest.raises(ConflictError):
        asyncio.run(catalog.add_org_member(org.id, author.id, "admin"))


# ---- generated content ----

PHOTOSYNTHESIS = (
    "Photosynthesis converts sunlight into chemical energy. "
    "Chlorophyll inside the chloroplast absorbs sunlight for the plant. "
    "The stomata let carbon dioxide enter each leaf during daylight. "
    "Glucose produced by photosynthesis feeds the growing plant."
)


def test_generated_quiz_is_stored_against_the_lesson(catalog, author, store) -> None:
    course = _course(catalog, author)
    lesson = asyncio.run(catalog.create_lesson(course.id, "Photosynthesis", PHOTOSYNTHESIS))

    quiz = asyncio.run(catalog.generate_quiz(course.id, lesson.id, count=3))

    assert quiz.title == "Photosynthesis quiz"
    assert quiz.lesson_id == lesson.id
    assert [q.correct_answer for q in quiz.questions] == ["photosynthesis", "plant", "carbon"]
    assert all(q.type == QuestionType.MULTIPLE_CHOICE for q in quiz.questions)
    assert quiz.total_points == 3
    assert quiz.passing_score == 3
    assert store._ledger.quizzes._by_id[quiz.id] == quiz


def test_generated_quiz_takes_title_and_passing_score(catalog, author) -> None:
    course = _course(catalog, author)
    lesson = asyncio.run(catalog.create_lesson(course.id, "Photosynthesis", PHOTOSYNTHESIS))

    quiz = asyncio.run(
        catalog.generate_quiz(course.id, lesson.id, count=2, title="Warm-up", passing_score=1)
    )
    assert (quiz.title, quiz.passing_score, len(quiz.questions)) == ("Warm-up", 1, 2)


def test_generated_quiz_lesson_must_belong_to_course(catalog, author) -> None:
    bio = _course(catalog, author)
    chem = _course(catalog, author, slug="chemistry-101")
    lesson = asyncio.run(catalog.create_lesson(chem.id, "Atoms", PHOTOSYNTHESIS))
    with pytest.raises(NotFoundError):
        asyncio.run(catalog.generate_quiz(bio.id, lesson.id))


def test_generated_quiz_from_empty_lesson_rejected(catalog, author, store) -> None:
    course = _course(catalog, author)
    lesson = asyncio.run(catalog.create_lesson(course.id, "Intro", ""))
    with pytest.raises(InvalidInputError):
        asyncio.run(catalog.generate_quiz(course.id, lesson.id))
    assert store._ledger.quizzes._by_id == {}


def test_draft_lesson_falls_back_to_course_lessons(catalog, author) -> None:
    course = _course(catalog, author)
    asyncio.run(catalog.create_lesson(course.id, "Photosynthesis", PHOTOSYNTHESIS))

    text = asyncio.run(catalog.draft_lesson(course.id, "Photosynthesis", "beginner"))

    assert text.startswith("# Photosynthesis\n")
    assert "_Part of Biology._" in text
    assert "- Chlorophyll inside the chloroplast absorbs sunlight for the plant." in text


def test_draft_lesson_prefers_given_references(catalog, author) -> None:
    course = _course(catalog, author)
    asyncio.run(catalog.create_lesson(course.id, "Photosynthesis", PHOTOSYNTHESIS))

    text = asyncio.run(
        catalog.draft_lesson(
            course.id, "Respiration", "beginner", ["Mitochondria release stored energy in cells."]
        )
    )
    assert "- Mitochondria release stored energy in cells." in text
    assert "Chlorophyll" not in text


def test_draft_lesson_unknown_course(catalog) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(catalog.draft_lesson(uuid4(), "Cells", "beginner"))

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from settlement.core.errors import GatewayError, InvalidInputError
from settlement.services.content_generator import (
    OllamaContentGenerator,
    TemplateContentGenerator,
)

LESSON = (
    "Photosynthesis\n\n"
    "Photosynthesis converts sunlight into chemical energy. "
    "Chlorophyll inside the chloroplast absorbs sunlight for the plant. "
    "The stomata let carbon dioxide enter each leaf during daylight. "
    "Glucose produced by photosynthesis feeds the growing plant."
)


@pytest.fixture
def template() -> TemplateContentGenerator:
    return TemplateContentGenerator()


# ---- template lesson drafts ----


def test_draft_without_references_uses_outline(template) -> None:
    text = asyncio.run(template.generate_lesson_text("Fractions", "Beginner"))

    assert text.startswith("# Fractions\n")
    assert "no prior knowledge" in text
    assert "- Why Fractions matters and the problems it solves." in text
    assert "_Part of" not in text


def test_draft_pulls_key_ideas_from_references(template) -> None:
    text = asyncio.run(
        template.generate_lesson_text(
            "Photosynthesis", "advanced", reference_texts=[LESSON], course_title="Biology"
        )
    )

    assert "_Part of Biology._" in text
    assert "edge cases" in text
    assert "- Chlorophyll inside the chloroplast absorbs sunlight for the plant." in text
    # the bare title line is too short to be an idea
    assert "- Photosynthesis\n" not in text


def test_draft_is_deterministic(template) -> None:
    first = asyncio.run(template.generate_lesson_text("Cells", "intermediate", [LESSON]))
    second = asyncio.run(template.generate_lesson_text("Cells", "intermediate", [LESSON]))
    assert first == second


def test_draft_requires_topic(template) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(template.generate_lesson_text("   ", "beginner"))


# ---- template quizzes ----


def test_quiz_blanks_key_terms_with_distractors(template) -> None:
    questions = asyncio.run(template.generate_quiz_questions(LESSON, 3))

    assert len(questions) == 3
    first = questions[0]
    assert first == {
        "question": "Fill in the blank: _____ converts sunlight into chemical energy.",
        "type": "multiple_choice",
        "options": ["absorbs", "carbon", "photosynthesis", "plant"],
        "correct_answer": "photosynthesis",
    }
    answers = [q["correct_answer"] for q in questions]
    assert answers == ["photosynthesis", "plant", "carbon"]
    for q in questions:
        assert q["correct_answer"] in q["options"]
        assert len(set(q["options"])) == 4


def test_quiz_stops_when_sentences_run_out(template) -> None:
    questions = asyncio.run(template.generate_quiz_questions(LESSON, 20))
    assert len(questions) == 4
    assert len({q["correct_answer"] for q in questions}) == 4


def test_quiz_without_distractors_asks_for_typed_answer(template) -> None:
    (question,) = asyncio.run(
        template.generate_quiz_questions("Mitochondria generate energy for every living cell.", 5)
    )
    assert question["type"] == "type_answer"
    assert question["options"] == []
    assert question["correct_answer"] == "energy"
    assert "_____" in question["question"]


def test_quiz_from_too_little_text_is_rejected(template) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(template.generate_quiz_questions("Short note.", 3))


@pytest.mark.parametrize("count", [0, 21])
def test_quiz_count_bounds(template, count) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(template.generate_quiz_questions(LESSON, count))


# ---- Ollama ----


def _ollama(handler) -> OllamaContentGenerator:
    return OllamaContentGenerator(
        "http://ollama.test", "llama3.2", transport=httpx.MockTransport(handler)
    )


def test_ollama_lesson_sends_prompt_with_references() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"response": "# Cells\n\nCells are small."})

    text = asyncio.run(
        _ollama(handler).generate_lesson_text(
            "Cells", "beginner", ["The cell is the unit of life"], "Biology"
        )
    )

    assert text == "# Cells\n\nCells are small."
    (body,) = seen
    assert body["model"] == "llama3.2"
    assert body["stream"] is False
    assert "format" not in body
    assert '"Cells"' in body["prompt"]
    assert "Biology" in body["prompt"]
    assert "The cell is the unit of life" in body["prompt"]


def test_ollama_quiz_keeps_only_well_formed_questions() -> None:
    payload = {
        "questions": [
            {"question": "Unit of life?", "options": ["cell", "atom", "gene", "organ"],
             "correctAnswer": "cell"},
            {"question": "Broken", "options": ["a", "b"], "correct_answer": "z"},
            "not a question",
        ]
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["format"] == "json"
        return httpx.Response(200, json={"response": json.dumps(payload)})

    questions = asyncio.run(_ollama(handler).generate_quiz_questions("lesson", 3))

    assert questions == [
        {
            "question": "Unit of life?",
            "type": "multiple_choice",
            "options": ["cell", "atom", "gene", "organ"],
            "correct_answer": "cell",
        }
    ]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "model not loaded"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"response": ""}),
        httpx.Response(200, json={"response": "{\"questions\": \"nope\"}"}),
        httpx.Response(200, json={"response": "{\"questions\": []}"}),
    ],
)
def test_ollama_unusable_answers_raise_gateway_error(response) -> None:
    generator = _ollama(lambda request: response)
    with pytest.raises(GatewayError):
        asyncio.run(generator.generate_quiz_questions("lesson", 2))


def test_ollama_unreachable_raises_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayError, match="unreachable"):
        asyncio.run(_ollama(handler).generate_lesson_text("Cells", "beginner"))

"""Content collaborator: draft lesson text, derive quiz questions from it.

    text = await content_generator.generate_lesson_text(
        "Photosynthesis", "beginner", reference_texts=[...], course_title="Biology"
    )
    questions = await content_generator.generate_quiz_questions(text, 5)

Each question is a dict with ``question``, ``type``, ``options`` and
``correct_answer``, the shape the catalog accepts for a quiz.

TemplateContentGenerator is the default: it never leaves the process and
gives the same output for the same input, so drafts are reproducible in
dev and tests.  OllamaContentGenerator asks a local Ollama model over
httpx and is used when CONTENT_LLM_URL is set.  A model that cannot be
reached or answers with something unusable raises GatewayError.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from settlement.core.config import SETTINGS
from settlement.core.errors import GatewayError, InvalidInputError

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 20
BLANK = "_____"

_WORD = re.compile(r"[A-Za-z][A-Za-z-]+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_MARKUP = re.compile(r"^\s*(?:#+|[-*]|\d+\.)\s*")
_STOPWORDS = frozenset(
    """
    about above after again against almost along also although among another
    because been before being below between both cannot could does doing during
    each every first following from further have having here however into itself
    just least less many might more most much must never other otherwise over
    part rather same should since some still such than that their them then
    there these they this those through thus under until upon very were what
    when where whether which while whom whose will with within without would
    your yours lesson topic level course learners learner summary overview
    """.split()
)

_LEVEL_INTROS = {
    "beginner": "This lesson assumes no prior knowledge and builds the core vocabulary step by step.",
    "intermediate": "This lesson assumes the basics are familiar and focuses on how the ideas connect.",
    "advanced": "This lesson assumes working fluency and concentrates on edge cases and trade-offs.",
}


class ContentGenerator(Protocol):
    async def generate_lesson_text(
        self,
        topic: str,
        level: str,
        reference_texts: Sequence[str] | None = None,
        course_title: str | None = None,
    ) -> str: ...

    async def generate_quiz_questions(
        self, lesson_text: str, count: int
    ) -> list[dict[str, Any]]: ...


def _check_count(count: int) -> None:
    if not 1 <= count <= MAX_QUESTIONS:
        raise InvalidInputError(f"question count must be between 1 and {MAX_QUESTIONS}")


def _sentences(text: str) -> list[str]:
    out = []
    for line in text.splitlines():
        line = _MARKUP.sub("", line).strip().strip("_*")
        if not line:
            continue
        out.extend(s.strip() for s in _SENTENCE_END.split(line) if s.strip())
    return out


def _key_terms(text: str) -> list[str]:
    """Content words of five letters or more, most frequent first."""
    counts = Counter(
        w.lower() for w in _WORD.findall(text) if len(w) >= 5 and w.lower() not in _STOPWORDS
    )
    return [term for term, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]


def _contains(sentence: str, term: str) -> re.Match[str] | None:
    return re.search(rf"\b{re.escape(term)}\b", sentence, re.IGNORECASE)


class TemplateContentGenerator:
    """Deterministic drafts built from the topic and any reference texts.

    Quiz questions are cloze items: a lesson sentence with its strongest
    key term blanked out, the other key terms of the lesson as
    distractors.  Without three distractors to offer, the question asks
    for the term as typed text instead.
    """

    async def generate_lesson_text(
        self,
        topic: str,
        level: str,
        reference_texts: Sequence[str] | None = None,
        course_title: str | None = None,
    ) -> str:
        topic = topic.strip()
        if not topic:
            raise InvalidInputError("topic is required")
        references = [t for t in (reference_texts or ()) if t.strip()]

        lines = [f"# {topic}", ""]
        if course_title:
            lines += [f"_Part of {course_title}._", ""]
        lines += [
            "## Overview",
            "",
            f"{topic} is the subject of this {level.lower()} lesson. "
            + _LEVEL_INTROS.get(level.lower(), "Work through each section in order."),
            "",
            "## Key ideas",
            "",
        ]

        sentences = [
            s for text in references for s in _sentences(text) if len(s.split()) >= 4
        ]
        ideas = []
        for term in _key_terms(" ".join(references))[:5]:
            found = next((s for s in sentences if _contains(s, term) and s not in ideas), None)
            if found:
                ideas.append(found)
        if ideas:
            lines += [f"- {s}" for s in ideas]
        else:
            lines += [
                f"- What {topic} is and where it shows up in practice.",
                f"- Why {topic} matters and the problems it solves.",
                f"- How to apply {topic} to a worked example.",
            ]

        lines += [
            "",
            "## Summary",
            "",
            f"Review the key ideas above, then check your understanding of {topic} "
            "with the quiz for this lesson.",
        ]
        return "\n".join(lines) + "\n"

    async def generate_quiz_questions(
        self, lesson_text: str, count: int
    ) -> list[dict[str, Any]]:
        _check_count(count)
        vocabulary = _key_terms(lesson_text)
        used: set[str] = set()
        questions: list[dict[str, Any]] = []

        for sentence in _sentences(lesson_text):
            if len(questions) == count:
                break
            if len(sentence.split()) < 6:
                continue
            for answer in vocabulary:
                match = None if answer in used else _contains(sentence, answer)
                if match:
                    break
            else:
                continue
            used.add(answer)
            prompt = sentence[: match.start()] + BLANK + sentence[match.end():]
            distractors = [
                t for t in vocabulary if t != answer and not _contains(sentence, t)
            ][:3]
            if len(distractors) == 3:
                questions.append(
                    {
                        "question": f"Fill in the blank: {prompt}",
                        "type": "multiple_choice",
                        "options": sorted([answer, *distractors]),
                        "correct_answer": answer,
                    }
                )
            else:
                questions.append(
                    {
                        "question": f"Type the missing word: {prompt}",
                        "type": "type_answer",
                        "options": [],
                        "correct_answer": answer,
                    }
                )

        if not questions:
            raise InvalidInputError("lesson text is too short to generate questions from")
        return questions


_LESSON_PROMPT = """You are writing a {level} level lesson{course} on "{topic}".
Write clear, well-structured markdown with an overview, key ideas with examples, and a short summary.
{references}"""

_QUIZ_PROMPT = """Write {count} multiple choice questions that test understanding of the lesson below.
Answer with JSON only, in the form
{{"questions": [{{"question": "...", "options": ["a", "b", "c", "d"], "correct_answer": "a"}}]}}
where correct_answer is one of the four options.

Lesson:
{lesson}"""


class OllamaContentGenerator:
    """Ollama ``/api/generate`` with streaming off."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    async def _generate(self, prompt: str, *, as_json: bool = False) -> str:
        payload: dict[str, Any] = {"model": self._model, "prompt": prompt, "stream": False}
        if as_json:
            payload["format"] = "json"
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                resp = await client.post("/api/generate", json=payload)
            except httpx.TimeoutException:
                raise GatewayError("content model timed out") from None
            except httpx.HTTPError as exc:
                raise GatewayError(f"content model unreachable: {exc.__class__.__name__}") from None
        if resp.status_code >= 400:
            raise GatewayError(f"content model rejected request: HTTP {resp.status_code}")
        try:
            text = resp.json().get("response")
        except (ValueError, AttributeError):
            raise GatewayError("content model returned unparsable response") from None
        if not isinstance(text, str) or not text.strip():
            raise GatewayError("content model returned no text")
        return text

    async def generate_lesson_text(
        self,
        topic: str,
        level: str,
        reference_texts: Sequence[str] | None = None,
        course_title: str | None = None,
    ) -> str:
        if not topic.strip():
            raise InvalidInputError("topic is required")
        references = ""
        if reference_texts:
            joined = "\n\n".join(reference_texts)
            references = f"Base the lesson on this reference material:\n\n{joined}"
        prompt = _LESSON_PROMPT.format(
            level=level,
            topic=topic.strip(),
            course=f' in the course "{course_title}"' if course_title else "",
            references=references,
        )
        text = await self._generate(prompt)
        logger.info("Drafted lesson topic=%r model=%s chars=%d", topic, self._model, len(text))
        return text

    async def generate_quiz_questions(
        self, lesson_text: str, count: int
    ) -> list[dict[str, Any]]:
        _check_count(count)
        raw = await self._generate(
            _QUIZ_PROMPT.format(count=count, lesson=lesson_text), as_json=True
        )
        try:
            items = json.loads(raw)["questions"]
        except (ValueError, KeyError, TypeError):
            raise GatewayError("content model returned malformed quiz JSON") from None
        if not isinstance(items, list):
            raise GatewayError("content model returned malformed quiz JSON")

        questions = []
        for item in items[:count]:
            if not isinstance(item, dict):
                continue
            options = item.get("options")
            answer = item.get("correct_answer", item.get("correctAnswer"))
            if not item.get("question") or not isinstance(options, list) or answer not in options:
                logger.warning("Dropping malformed generated question: %r", item)
                continue
            questions.append(
                {
                    "question": str(item["question"]),
                    "type": "multiple_choice",
                    "options": [str(o) for o in options],
                    "correct_answer": str(answer),
                }
            )
        if not questions:
            raise GatewayError("content model returned no usable questions")
        return questions


if SETTINGS.content_llm_url:
    content_generator: ContentGenerator = OllamaContentGenerator(
        SETTINGS.content_llm_url, SETTINGS.content_llm_model
    )
else:
    content_generator = TemplateContentGenerator()

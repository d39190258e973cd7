"""Search collaborator: index lesson text, find similar lessons.

    await search_index.index_text(text, {"lesson_id": ..., "course_id": ...})
    await search_index.search_similar("photosynthesis light", k=5,
                                      filter_tags={"course_id": ...})

The default implementation is an in-process term-overlap index: good
enough for dev, tests and small catalogs, and it keeps the collaborator
behind a Protocol so a vector store can replace it without touching the
catalog.  Indexing is fire-and-forget from the catalog's point of view.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

_TOKEN = re.compile(r"[a-z0-9]+")


def _terms(text: str) -> frozenset[str]:
    return frozenset(t for t in _TOKEN.findall(text.lower()) if len(t) > 1)


@dataclass(frozen=True, slots=True)
class SearchMatch:
    tags: dict[str, str]
    score: float
    snippet: str


class SearchIndex(Protocol):
    async def index_text(self, text: str, tags: Mapping[str, str]) -> None: ...

    async def search_similar(
        self,
        query: str,
        k: int = 5,
        filter_tags: Mapping[str, str] | None = None,
    ) -> list[SearchMatch]: ...


class InMemorySearchIndex:
    """Cosine similarity over term sets.

    Documents are keyed by their ``lesson_id`` tag when present, so
    re-indexing a lesson replaces its previous entry.
    """

    def __init__(self) -> None:
        self._docs: dict[str, tuple[frozenset[str], dict[str, str], str]] = {}

    async def index_text(self, text: str, tags: Mapping[str, str]) -> None:
        key = tags.get("lesson_id") or str(len(self._docs))
        self._docs[key] = (_terms(text), dict(tags), text[:200])

    async def search_similar(
        self,
        query: str,
        k: int = 5,
        filter_tags: Mapping[str, str] | None = None,
    ) -> list[SearchMatch]:
        wanted = _terms(query)
        if not wanted or k <= 0:
            return []
        matches = []
        for terms, tags, snippet in self._docs.values():
            if filter_tags and any(tags.get(n) != v for n, v in filter_tags.items()):
                continue
            overlap = len(wanted & terms)
            if overlap:
                score = overlap / math.sqrt(len(wanted) * len(terms))
                matches.append(SearchMatch(tags=tags, score=round(score, 6), snippet=snippet))
        matches.sort(key=lambda m: (-m.score, sorted(m.tags.items())))
        return matches[:k]

    def clear(self) -> None:
        self._docs.clear()


search_index: SearchIndex = InMemorySearchIndex()

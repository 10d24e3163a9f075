"""In-process search index (default backend, also used in tests).

Approximates the Elasticsearch query used in production: lowercase +
ASCII-folded tokens, best-fields scoring over label^3, variants^2 and
definition, AUTO fuzziness, and search_after keyset paging.
"""

from __future__ import annotations

import functools
import re
import threading
import time
import unicodedata

from taxonomy_api.models.search_models import (
    SearchDocument,
    SearchFilters,
    SearchHit,
    SearchHits,
    SortField,
    SortKey,
    SortOrder,
)
from taxonomy_api.services.search.base import BaseSearchIndex

FIELD_BOOSTS = {"label": 3.0, "variants": 2.0, "definition": 1.0}

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str | None) -> list[str]:
    if not text:
        return []
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return _TOKEN_RE.findall(folded.lower())


def _max_edits(term: str) -> int:
    # Elasticsearch "AUTO" fuzziness
    if len(term) <= 2:
        return 0
    if len(term) <= 5:
        return 1
    return 2


def _within_distance(a: str, b: str, limit: int) -> bool:
    if abs(len(a) - len(b)) > limit:
        return False
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        cur = [i]
        for j, cb in enumerate(b, 1):
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != cb)))
        if min(cur) > limit:
            return False
        prev = cur
    return prev[-1] <= limit


def _field_score(terms: list[str], tokens: set[str]) -> float:
    score = 0.0
    for term in terms:
        if term in tokens:
            score += 1.0
            continue
        edits = _max_edits(term)
        if edits and any(_within_distance(term, tok, edits) for tok in tokens):
            score += 0.5
    return score


def _compare(a: list, b: list, sort: list[SortKey]) -> int:
    for value_a, value_b, key in zip(a, b, sort):
        if value_a == value_b:
            continue
        less = value_a < value_b
        if key.order == SortOrder.DESC:
            less = not less
        return -1 if less else 1
    return 0


class MemorySearchIndex(BaseSearchIndex):
    def __init__(self):
        self._docs: dict[str, SearchDocument] = {}
        self._tokens: dict[str, dict[str, set[str]]] = {}
        self._lock = threading.Lock()

    def _put_locked(self, doc: SearchDocument) -> None:
        self._docs[doc.id] = doc
        self._tokens[doc.id] = {
            "label": set(tokenize(doc.label)),
            "variants": {t for v in doc.variants for t in tokenize(v)},
            "definition": set(tokenize(doc.definition)),
        }

    async def index(self, doc: SearchDocument) -> None:
        with self._lock:
            self._put_locked(doc)

    async def index_many(self, docs: list[SearchDocument]) -> int:
        with self._lock:
            for doc in docs:
                self._put_locked(doc)
        return 0

    async def delete(self, concept_id: str) -> None:
        with self._lock:
            self._docs.pop(concept_id, None)
            self._tokens.pop(concept_id, None)

    async def get(self, concept_id: str) -> SearchDocument | None:
        return self._docs.get(concept_id)

    def _score(self, doc_id: str, terms: list[str]) -> float:
        fields = self._tokens[doc_id]
        return max(
            boost * _field_score(terms, fields[name]) for name, boost in FIELD_BOOSTS.items()
        )

    @staticmethod
    def _sort_values(doc: SearchDocument, score: float, sort: list[SortKey]) -> list:
        values = []
        for key in sort:
            if key.field == SortField.SCORE:
                values.append(score)
            elif key.field == SortField.LABEL:
                values.append(doc.label)
            elif key.field == SortField.LEVEL:
                values.append(doc.level)
            else:
                values.append(doc.id)
        return values

    async def search(
        self,
        query: str | None,
        filters: SearchFilters,
        sort: list[SortKey],
        search_after: list | None,
        size: int,
    ) -> SearchHits:
        start = time.perf_counter()
        terms = tokenize(query)
        with self._lock:
            candidates = list(self._docs.values())
            hits: list[SearchHit] = []
            for doc in candidates:
                if filters.level is not None and doc.level != filters.level:
                    continue
                if filters.parent_id is not None and filters.parent_id not in doc.parent_ids:
                    continue
                score = self._score(doc.id, terms) if terms else 1.0
                if terms and score <= 0:
                    continue
                hits.append(
                    SearchHit(
                        document=doc,
                        score=score,
                        sort_values=self._sort_values(doc, score, sort),
                    )
                )

        total = len(hits)
        hits.sort(key=functools.cmp_to_key(lambda a, b: _compare(a.sort_values, b.sort_values, sort)))
        if search_after is not None:
            hits = [h for h in hits if _compare(h.sort_values, search_after, sort) > 0]
        took_ms = int((time.perf_counter() - start) * 1000)
        return SearchHits(hits=hits[:size], total=total, took_ms=took_ms)

    async def clear(self) -> None:
        with self._lock:
            self._docs.clear()
            self._tokens.clear()

    def __len__(self) -> int:
        return len(self._docs)

"""Pydantic models for the search index."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SearchDocument(BaseModel):
    """Denormalized per-concept search document."""

    id: str
    label: str
    definition: str | None = None
    level: int = 0
    variants: list[str] = []
    parent_ids: list[str] = []  # copy of direct parents for the children fast path


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortField(str, Enum):
    SCORE = "_score"
    LABEL = "label"
    LEVEL = "level"
    ID = "id"


class SortKey(BaseModel):
    field: SortField
    order: SortOrder = SortOrder.ASC


class SearchFilters(BaseModel):
    level: int | None = None
    parent_id: str | None = None


class SearchHit(BaseModel):
    document: SearchDocument
    score: float | None = None
    sort_values: list  # full sort tuple of this hit, used to build cursors


class SearchHits(BaseModel):
    hits: list[SearchHit]
    total: int
    took_ms: int = 0

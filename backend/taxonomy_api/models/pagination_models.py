"""Cursor (keyset) pagination models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from taxonomy_api.models.concept_models import ConceptListItem

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


class PageDirection(str, Enum):
    NEXT = "next"
    PREV = "prev"


class ListingSource(str, Enum):
    SEARCH = "search"
    STORE = "store"


class PageInfo(BaseModel):
    page_size: int
    next_cursor: str | None = None
    prev_cursor: str | None = None
    has_more: bool = False


class ConceptPage(BaseModel):
    items: list[ConceptListItem]
    page: PageInfo
    source: ListingSource = ListingSource.STORE


class RelationPage(ConceptPage):
    """Children or parents of one concept."""

    node_id: str
    total: int | None = None


class SearchPage(ConceptPage):
    query: str | None = None
    total: int = 0
    took_ms: int = 0


def clamp_page_size(page_size: int | None) -> int:
    if page_size is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(page_size, MAX_PAGE_SIZE))

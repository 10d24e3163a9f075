"""Abstract base class for search indexes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from taxonomy_api.models.search_models import (
    SearchDocument,
    SearchFilters,
    SearchHits,
    SortKey,
)


class BaseSearchIndex(ABC):
    """Denormalized concept documents with full-text search and keyset paging.

    `sort` passed to the search methods is complete: it already ends with
    the id tiebreaker. `search_after` holds the sort values of the last hit
    already seen, and only hits strictly after it are returned.
    """

    @abstractmethod
    async def index(self, doc: SearchDocument) -> None:
        ...

    @abstractmethod
    async def index_many(self, docs: list[SearchDocument]) -> int:
        """Bulk index; returns the number of documents that failed."""

    @abstractmethod
    async def delete(self, concept_id: str) -> None:
        """Remove a document. Missing documents are not an error."""

    @abstractmethod
    async def search(
        self,
        query: str | None,
        filters: SearchFilters,
        sort: list[SortKey],
        search_after: list | None,
        size: int,
    ) -> SearchHits:
        ...

    async def search_by_parent_id(
        self,
        parent_id: str,
        sort: list[SortKey],
        search_after: list | None,
        size: int,
    ) -> SearchHits:
        """Children of a concept, served from the parent_ids copy on each document."""
        return await self.search(
            None, SearchFilters(parent_id=parent_id), sort, search_after, size
        )

    @abstractmethod
    async def clear(self) -> None:
        """Drop every document and recreate an empty index."""

    async def close(self) -> None:
        """Release connections."""

"""Full-text search, the children fast path, and index synchronization."""

from __future__ import annotations

import logging

from taxonomy_api.models.concept_models import ConceptListItem, ReindexResponse
from taxonomy_api.models.pagination_models import (
    ListingSource,
    PageDirection,
    SearchPage,
    clamp_page_size,
)
from taxonomy_api.models.search_models import SearchDocument, SearchFilters, SearchHit
from taxonomy_api.services.search.base import BaseSearchIndex
from taxonomy_api.services.search.cursor import (
    KEYSET_SORT,
    decode_sort_cursor,
    paginate,
    parse_sort,
    reverse_sort,
    sort_signature,
    with_tiebreaker,
)
from taxonomy_api.services.store.base import BaseGraphStore

logger = logging.getLogger(__name__)

REINDEX_BATCH_SIZE = 1000


def hit_to_item(hit: SearchHit) -> ConceptListItem:
    doc = hit.document
    return ConceptListItem(
        id=doc.id,
        label=doc.label,
        definition=doc.definition,
        level=doc.level,
        variants=doc.variants,
        parent_ids=doc.parent_ids,
        score=hit.score,
    )


class SearchService:
    def __init__(self, index: BaseSearchIndex, store: BaseGraphStore):
        self.index = index
        self.store = store

    async def search(
        self,
        query: str | None,
        level: int | None = None,
        sort: list | None = None,
        cursor: str | None = None,
        direction: PageDirection = PageDirection.NEXT,
        page_size: int | None = None,
    ) -> SearchPage:
        """Relevance or field-sorted search with keyset cursors.

        `sort` is a list of SortKey; relevance (score desc) when empty.
        """
        size = clamp_page_size(page_size)
        full_sort = with_tiebreaker(sort or parse_sort(None))
        signature = sort_signature(full_sort)
        after = decode_sort_cursor(cursor, full_sort, signature) if cursor else None
        query_sort = reverse_sort(full_sort) if direction == PageDirection.PREV else full_sort

        result = await self.index.search(
            query, SearchFilters(level=level), query_sort, after, size + 1
        )
        hits, info = paginate(
            result.hits, size, direction, cursor is not None,
            key=lambda h: h.sort_values, signature=signature,
        )
        return SearchPage(
            items=[hit_to_item(h) for h in hits],
            page=info,
            source=ListingSource.SEARCH,
            query=query,
            total=result.total,
            took_ms=result.took_ms,
        )

    async def children_from_index(
        self,
        parent_id: str,
        after: list | None,
        direction: PageDirection,
        limit: int,
    ) -> list[ConceptListItem]:
        """Children rows in (level, label, id) order straight from the index."""
        sort = reverse_sort(KEYSET_SORT) if direction == PageDirection.PREV else KEYSET_SORT
        result = await self.index.search_by_parent_id(parent_id, sort, after, limit)
        return [hit_to_item(h) for h in result.hits]

    # --- synchronization ---

    async def build_document(self, concept_id: str) -> SearchDocument | None:
        concept = await self.store.get_concept(concept_id)
        if concept is None:
            return None
        variants = await self.store.get_variants(concept_id)
        parent_ids = await self.store.get_parent_ids(concept_id)
        return SearchDocument(
            id=concept.id,
            label=concept.label,
            definition=concept.definition,
            level=concept.level,
            variants=variants,
            parent_ids=parent_ids,
        )

    async def sync_concept(self, concept_id: str) -> bool:
        """Re-index one concept from the store. Failures are logged, never raised."""
        try:
            doc = await self.build_document(concept_id)
            if doc is None:
                await self.index.delete(concept_id)
            else:
                await self.index.index(doc)
            return True
        except Exception as e:
            logger.warning("Search index sync failed for %s: %s", concept_id, e)
            return False

    async def remove_concept(self, concept_id: str) -> bool:
        try:
            await self.index.delete(concept_id)
            return True
        except Exception as e:
            logger.warning("Search index delete failed for %s: %s", concept_id, e)
            return False

    async def reindex_all(self, batch_size: int = REINDEX_BATCH_SIZE) -> ReindexResponse:
        """Rebuild the whole index from the store in id-ordered batches."""
        await self.index.clear()
        indexed = 0
        failed = 0
        after_id: str | None = None
        while True:
            batch = await self.store.list_concepts_after_id(after_id, batch_size)
            if not batch:
                break
            ids = [c.id for c in batch]
            variants = await self.store.variants_of_many(ids)
            parents = await self.store.parent_ids_of_many(ids)
            docs = [
                SearchDocument(
                    id=c.id,
                    label=c.label,
                    definition=c.definition,
                    level=c.level,
                    variants=variants.get(c.id, []),
                    parent_ids=parents.get(c.id, []),
                )
                for c in batch
            ]
            batch_failed = await self.index.index_many(docs)
            failed += batch_failed
            indexed += len(docs) - batch_failed
            after_id = batch[-1].id
            logger.info("Reindexed %d concepts so far", indexed)
        return ReindexResponse(indexed=indexed, failed=failed)


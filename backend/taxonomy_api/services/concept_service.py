"""Read side of the concept API: details, cursor listings, closures, paths."""

from __future__ import annotations

import asyncio
import logging

from taxonomy_api.exceptions import NotFoundError
from taxonomy_api.models.concept_models import (
    Concept,
    ConceptDetail,
    ConceptListItem,
    ConceptRef,
    ConceptStats,
    to_list_item,
)
from taxonomy_api.models.pagination_models import (
    ConceptPage,
    ListingSource,
    PageDirection,
    RelationPage,
    clamp_page_size,
)
from taxonomy_api.models.traversal_models import ConceptSet, PathSource, PathsToRootResult
from taxonomy_api.services.search.cursor import (
    KEYSET_SORT,
    decode_keyset,
    paginate,
    sort_signature,
)
from taxonomy_api.services.search.search_service import SearchService
from taxonomy_api.services.store.base import BaseGraphStore
from taxonomy_api.services.traversal import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PATHS,
    DEFAULT_MAX_RESULTS,
    TraversalEngine,
)

logger = logging.getLogger(__name__)

CHILDREN_SIGNATURE = sort_signature(KEYSET_SORT, prefix="children")
PARENTS_SIGNATURE = sort_signature(KEYSET_SORT, prefix="parents")
CONCEPTS_SIGNATURE = sort_signature(KEYSET_SORT, prefix="concepts")


def _keyset(item: ConceptListItem) -> list:
    return [item.level, item.label, item.id]


class ConceptService:
    def __init__(
        self,
        store: BaseGraphStore,
        engine: TraversalEngine,
        search: SearchService,
    ):
        self.store = store
        self.engine = engine
        self.search = search

    async def _require(self, concept_id: str) -> Concept:
        concept = await self.store.get_concept(concept_id)
        if concept is None:
            raise NotFoundError(f"Concept {concept_id} not found")
        return concept

    async def _items(self, concepts: list[Concept]) -> list[ConceptListItem]:
        if not concepts:
            return []
        variants = await self.store.variants_of_many([c.id for c in concepts])
        return [to_list_item(c, variants.get(c.id)) for c in concepts]

    async def get_detail(self, concept_id: str) -> ConceptDetail:
        concept = await self._require(concept_id)
        variants, parents, child_count = await asyncio.gather(
            self.store.get_variants(concept_id),
            self.store.get_parents(concept_id),
            self.store.count_children(concept_id),
        )
        return ConceptDetail(
            **concept.model_dump(),
            variants=variants,
            parents=[ConceptRef(id=p.id, label=p.label) for p in parents],
            child_count=child_count,
        )

    # --- cursor listings ---

    async def list_children(
        self,
        concept_id: str,
        cursor: str | None = None,
        direction: PageDirection = PageDirection.NEXT,
        page_size: int | None = None,
        source: ListingSource = ListingSource.SEARCH,
    ) -> RelationPage:
        """Children ordered by (level, label, id).

        Served from the search index's parent_ids field when possible; a
        failing index falls back to the store with the same cursor.
        """
        await self._require(concept_id)
        size = clamp_page_size(page_size)
        after = decode_keyset(cursor, CHILDREN_SIGNATURE) if cursor else None

        rows: list[ConceptListItem] | None = None
        used = ListingSource.STORE
        if source == ListingSource.SEARCH:
            try:
                rows = await self.search.children_from_index(
                    concept_id, list(after) if after else None, direction, size + 1
                )
                used = ListingSource.SEARCH
            except Exception as e:
                logger.warning("Children of %s from index failed, using store: %s", concept_id, e)
        if rows is None:
            concepts = await self.store.list_children_page(
                concept_id, after, direction == PageDirection.PREV, size + 1
            )
            rows = await self._items(concepts)

        items, info = paginate(
            rows, size, direction, cursor is not None, key=_keyset, signature=CHILDREN_SIGNATURE
        )
        total = await self.store.count_children(concept_id)
        return RelationPage(node_id=concept_id, items=items, page=info, source=used, total=total)

    async def list_parents(
        self,
        concept_id: str,
        cursor: str | None = None,
        direction: PageDirection = PageDirection.NEXT,
        page_size: int | None = None,
    ) -> RelationPage:
        await self._require(concept_id)
        size = clamp_page_size(page_size)
        after = decode_keyset(cursor, PARENTS_SIGNATURE) if cursor else None
        concepts = await self.store.list_parents_page(
            concept_id, after, direction == PageDirection.PREV, size + 1
        )
        items, info = paginate(
            await self._items(concepts), size, direction, cursor is not None,
            key=_keyset, signature=PARENTS_SIGNATURE,
        )
        total = await self.store.count_parents(concept_id)
        return RelationPage(node_id=concept_id, items=items, page=info, total=total)

    async def list_concepts(
        self,
        level: int | None = None,
        cursor: str | None = None,
        direction: PageDirection = PageDirection.NEXT,
        page_size: int | None = None,
    ) -> ConceptPage:
        size = clamp_page_size(page_size)
        after = decode_keyset(cursor, CONCEPTS_SIGNATURE) if cursor else None
        concepts = await self.store.list_concepts_page(
            level, after, direction == PageDirection.PREV, size + 1
        )
        items, info = paginate(
            await self._items(concepts), size, direction, cursor is not None,
            key=_keyset, signature=CONCEPTS_SIGNATURE,
        )
        return ConceptPage(items=items, page=info)

    # --- closures and paths ---

    async def ancestors(
        self,
        concept_id: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        budget_seconds: float | None = None,
        fresh: bool = False,
    ) -> ConceptSet:
        return await self.engine.ancestors(
            concept_id, max_results, budget_seconds, use_recursive_query=fresh
        )

    async def descendants(
        self,
        concept_id: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        budget_seconds: float | None = None,
        fresh: bool = False,
    ) -> ConceptSet:
        return await self.engine.descendants(
            concept_id, max_results, budget_seconds, use_recursive_query=fresh
        )

    async def paths_to_root(
        self,
        concept_id: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_paths: int = DEFAULT_MAX_PATHS,
        source: PathSource = PathSource.ENGINE,
        budget_seconds: float | None = None,
    ) -> PathsToRootResult:
        if source == PathSource.STORE:
            return await self.engine.paths_to_root_from_store(concept_id, max_depth, max_paths)
        return await self.engine.paths_to_root(
            concept_id, max_depth, max_paths, budget_seconds=budget_seconds
        )

    async def stats(self) -> ConceptStats:
        total_nodes, total_edges, max_depth = await asyncio.gather(
            self.store.count_concepts(),
            self.store.count_edges(),
            self.store.max_level(),
        )
        return ConceptStats(total_nodes=total_nodes, total_edges=total_edges, max_depth=max_depth)

"""Write side: concept CRUD and cycle-safe edge mutation.

Order for every mutation: existence checks, cycle check, store write, cache
invalidation, search index sync. The index is updated only after the store
commit and its failures never fail the mutation.
"""

from __future__ import annotations

import logging

from taxonomy_api.exceptions import ConflictError, NotFoundError
from taxonomy_api.models.concept_models import (
    ConceptCreate,
    ConceptResponse,
    ConceptUpdate,
    Edge,
)
from taxonomy_api.services.cache.taxonomy_cache import TaxonomyCache
from taxonomy_api.services.cycle_guard import CycleGuard
from taxonomy_api.services.search.search_service import SearchService
from taxonomy_api.services.store.base import BaseGraphStore

logger = logging.getLogger(__name__)


class MutationService:
    def __init__(
        self,
        store: BaseGraphStore,
        cache: TaxonomyCache,
        guard: CycleGuard,
        search: SearchService,
    ):
        self.store = store
        self.cache = cache
        self.guard = guard
        self.search = search

    # --- concepts ---

    async def create_concept(self, data: ConceptCreate) -> ConceptResponse:
        concept = await self.store.insert_concept(data)
        logger.info("Created concept %s", concept.id)
        await self.search.sync_concept(concept.id)
        return ConceptResponse(**concept.model_dump(), variants=data.variants)

    async def update_concept(self, concept_id: str, data: ConceptUpdate) -> ConceptResponse:
        fields = data.model_dump(exclude_unset=True, exclude={"variants"})
        concept = await self.store.update_concept(concept_id, fields, variants=data.variants)
        if concept is None:
            raise NotFoundError(f"Concept {concept_id} not found")
        await self.cache.invalidate_concept(concept_id)
        await self.search.sync_concept(concept_id)
        variants = await self.store.get_variants(concept_id)
        return ConceptResponse(**concept.model_dump(), variants=variants)

    async def delete_concept(self, concept_id: str) -> None:
        """Delete a concept; its variants and edges go with it."""
        children = (await self.store.child_ids_of_many([concept_id])).get(concept_id, [])
        if not await self.store.delete_concept(concept_id):
            raise NotFoundError(f"Concept {concept_id} not found")
        logger.info("Deleted concept %s (%d children detached)", concept_id, len(children))

        await self.cache.invalidate_concept(concept_id)
        for child_id in children:
            await self.cache.invalidate_subtree(child_id)
        await self.search.remove_concept(concept_id)
        for child_id in children:
            await self.search.sync_concept(child_id)

    # --- edges ---

    async def create_edge(self, parent_id: str, child_id: str) -> Edge:
        found = await self.store.get_concepts([parent_id, child_id])
        for concept_id in (parent_id, child_id):
            if concept_id not in found:
                raise NotFoundError(f"Concept {concept_id} not found")
        if await self.store.get_edge(parent_id, child_id) is not None:
            raise ConflictError(f"Edge {parent_id} -> {child_id} already exists")
        edge = await self.guard.insert_edge(parent_id, child_id)
        logger.info("Created edge %s -> %s", parent_id, child_id)
        await self.cache.invalidate_subtree(child_id)
        await self.search.sync_concept(child_id)
        return edge

    async def delete_edge(self, parent_id: str, child_id: str) -> None:
        if not await self.store.delete_edge(parent_id, child_id):
            raise NotFoundError(f"Edge {parent_id} -> {child_id} not found")
        logger.info("Deleted edge %s -> %s", parent_id, child_id)
        await self.cache.invalidate_subtree(child_id)
        await self.search.sync_concept(child_id)

    async def get_edge(self, parent_id: str, child_id: str) -> Edge:
        edge = await self.store.get_edge(parent_id, child_id)
        if edge is None:
            raise NotFoundError(f"Edge {parent_id} -> {child_id} not found")
        return edge

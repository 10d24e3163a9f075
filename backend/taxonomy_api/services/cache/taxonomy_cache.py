"""Read-through cache for parent sets and concept snapshots.

Key layout:
    taxonomy:parents:<id>  -> [parent ids]       (TTL 15 min by default)
    taxonomy:concept:<id>  -> concept snapshot   (TTL 30 min by default)

The cache is an optimization only. Any backend failure is logged and
treated as a miss, so every read falls through to the graph store.
"""

from __future__ import annotations

import logging

from taxonomy_api.models.concept_models import Concept
from taxonomy_api.services.cache.base import BaseCache
from taxonomy_api.services.store.base import BaseGraphStore

logger = logging.getLogger(__name__)

PARENTS_PREFIX = "taxonomy:parents:"
CONCEPT_PREFIX = "taxonomy:concept:"
PARENTS_TTL = 60 * 15
CONCEPT_TTL = 60 * 30

# Upper bound on ids invalidated after one edge change; the rest expire by TTL
MAX_INVALIDATE = 10_000


def parents_key(concept_id: str) -> str:
    return f"{PARENTS_PREFIX}{concept_id}"


def concept_key(concept_id: str) -> str:
    return f"{CONCEPT_PREFIX}{concept_id}"


class TaxonomyCache:
    def __init__(
        self,
        backend: BaseCache,
        store: BaseGraphStore,
        parents_ttl: int = PARENTS_TTL,
        concept_ttl: int = CONCEPT_TTL,
    ):
        self.backend = backend
        self.store = store
        self.parents_ttl = parents_ttl
        self.concept_ttl = concept_ttl

    # --- failure-tolerant backend access ---

    async def _mget(self, keys: list[str]) -> list:
        try:
            return await self.backend.mget(keys)
        except Exception as e:
            logger.warning("Cache read failed, treating %d keys as misses: %s", len(keys), e)
            return [None] * len(keys)

    async def _set_many(self, items: dict, ttl: int) -> None:
        if not items:
            return
        try:
            await self.backend.set_many_with_ttl(items, ttl)
        except Exception as e:
            logger.warning("Cache write failed for %d keys: %s", len(items), e)

    async def _delete(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            await self.backend.delete_many(keys)
        except Exception as e:
            logger.warning("Cache delete failed for %d keys: %s", len(keys), e)

    # --- parent sets ---

    async def get_parent_ids(self, concept_id: str) -> list[str]:
        return (await self.parent_ids_of_many([concept_id]))[concept_id]

    async def parent_ids_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        """Parent ids for a whole frontier: one cache round trip, one store query for misses."""
        ids = list(dict.fromkeys(concept_ids))
        if not ids:
            return {}
        cached = await self._mget([parents_key(i) for i in ids])
        result: dict[str, list[str]] = {}
        misses: list[str] = []
        for concept_id, value in zip(ids, cached):
            if value is None:
                misses.append(concept_id)
            else:
                result[concept_id] = value
        if misses:
            logger.debug("Parent cache miss for %d ids", len(misses))
            fetched = await self.store.parent_ids_of_many(misses)
            for concept_id in misses:
                result[concept_id] = fetched.get(concept_id, [])
            await self._set_many(
                {parents_key(i): result[i] for i in misses}, self.parents_ttl
            )
        return result

    # --- concept snapshots ---

    async def get_concept(self, concept_id: str) -> Concept | None:
        return (await self.get_concepts([concept_id])).get(concept_id)

    async def get_concepts(self, concept_ids: list[str]) -> dict[str, Concept]:
        ids = list(dict.fromkeys(concept_ids))
        if not ids:
            return {}
        cached = await self._mget([concept_key(i) for i in ids])
        result: dict[str, Concept] = {}
        misses: list[str] = []
        for concept_id, value in zip(ids, cached):
            if value is None:
                misses.append(concept_id)
            else:
                result[concept_id] = Concept.model_validate(value)
        if misses:
            fetched = await self.store.get_concepts(misses)
            result.update(fetched)
            await self._set_many(
                {concept_key(c.id): c.model_dump(mode="json") for c in fetched.values()},
                self.concept_ttl,
            )
        return result

    # --- invalidation ---

    async def invalidate_concept(self, concept_id: str) -> None:
        await self._delete([concept_key(concept_id), parents_key(concept_id)])

    async def invalidate_subtree(self, root_id: str) -> int:
        """Drop cached parent sets for `root_id` and its descendants.

        Walks the subtree breadth-first against the store, one batched query
        per layer, up to MAX_INVALIDATE ids. Returns how many ids were covered.
        """
        seen: set[str] = {root_id}
        order: list[str] = [root_id]
        frontier = [root_id]
        capped = False
        while frontier and not capped:
            children = await self.store.child_ids_of_many(frontier)
            next_frontier: list[str] = []
            for parent_id in frontier:
                for child_id in children.get(parent_id, []):
                    if child_id in seen:
                        continue
                    if len(order) >= MAX_INVALIDATE:
                        capped = True
                        break
                    seen.add(child_id)
                    order.append(child_id)
                    next_frontier.append(child_id)
                if capped:
                    break
            frontier = next_frontier

        if capped:
            logger.warning(
                "Subtree of %s exceeds %d nodes; remaining parent cache entries expire by TTL",
                root_id,
                MAX_INVALIDATE,
            )
        await self._delete([parents_key(i) for i in order])
        return len(order)

    async def clear(self) -> None:
        try:
            await self.backend.clear()
        except Exception as e:
            logger.warning("Cache clear failed: %s", e)

"""Singleton wiring of store, cache, search index and services."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from taxonomy_api.config import CacheBackend, SearchBackend, Settings, settings_from_env
from taxonomy_api.services.cache.base import BaseCache
from taxonomy_api.services.cache.memory_cache import MemoryCache
from taxonomy_api.services.cache.taxonomy_cache import TaxonomyCache
from taxonomy_api.services.concept_service import ConceptService
from taxonomy_api.services.cycle_guard import CycleGuard
from taxonomy_api.services.graph_service import GraphService
from taxonomy_api.services.mutation_service import MutationService
from taxonomy_api.services.path_stream import PathStreamService
from taxonomy_api.services.search.base import BaseSearchIndex
from taxonomy_api.services.search.memory_index import MemorySearchIndex
from taxonomy_api.services.search.search_service import SearchService
from taxonomy_api.services.store.base import BaseGraphStore
from taxonomy_api.services.store.sqlite_store import SqliteGraphStore
from taxonomy_api.services.traversal import TraversalEngine

logger = logging.getLogger(__name__)

# Module-level singleton
_taxonomy: Taxonomy | None = None
_lock = threading.Lock()


@dataclass
class Taxonomy:
    store: BaseGraphStore
    cache: TaxonomyCache
    index: BaseSearchIndex
    engine: TraversalEngine
    streams: PathStreamService
    graph: GraphService
    search: SearchService
    concepts: ConceptService
    mutations: MutationService

    async def warm_up(self) -> None:
        """Fill an in-process index from the store; it starts empty on every boot."""
        if isinstance(self.index, MemorySearchIndex) and len(self.index) == 0:
            result = await self.search.reindex_all()
            logger.info("Search index warmed with %d concepts", result.indexed)

    async def close(self) -> None:
        await self.index.close()
        await self.cache.backend.close()
        await self.store.close()


def _create_cache_backend(settings: Settings) -> BaseCache:
    if settings.cache_backend == CacheBackend.REDIS:
        from taxonomy_api.services.cache.redis_cache import RedisCache
        return RedisCache(url=settings.redis_url)
    return MemoryCache()


def _create_index(settings: Settings) -> BaseSearchIndex:
    if settings.search_backend == SearchBackend.ELASTICSEARCH:
        from taxonomy_api.services.search.elasticsearch_index import ElasticsearchIndex
        return ElasticsearchIndex(url=settings.es_url, index_name=settings.es_index_name)
    return MemorySearchIndex()


def build_taxonomy(
    settings: Settings | None = None,
    store: BaseGraphStore | None = None,
    cache_backend: BaseCache | None = None,
    index: BaseSearchIndex | None = None,
) -> Taxonomy:
    """Assemble every service around one store, cache and index."""
    if settings is None:
        settings = settings_from_env()
    store = store or SqliteGraphStore(settings.db_path, replica_paths=settings.db_replicas)
    cache = TaxonomyCache(
        cache_backend or _create_cache_backend(settings),
        store,
        parents_ttl=settings.parents_ttl,
        concept_ttl=settings.concept_ttl,
    )
    index = index or _create_index(settings)

    engine = TraversalEngine(store, cache)
    search = SearchService(index, store)
    logger.info(
        "Taxonomy ready (cache=%s, search=%s)",
        settings.cache_backend.value,
        settings.search_backend.value,
    )
    return Taxonomy(
        store=store,
        cache=cache,
        index=index,
        engine=engine,
        streams=PathStreamService(engine),
        graph=GraphService(store, engine),
        search=search,
        concepts=ConceptService(store, engine, search),
        mutations=MutationService(store, cache, CycleGuard(store), search),
    )


def get_taxonomy() -> Taxonomy:
    """Return the process-wide Taxonomy, building it on first use."""
    global _taxonomy
    if _taxonomy is None:
        with _lock:
            if _taxonomy is None:
                _taxonomy = build_taxonomy()
    return _taxonomy


def set_taxonomy(taxonomy: Taxonomy | None) -> None:
    """Replace the singleton (tests inject stores with failure modes)."""
    global _taxonomy
    with _lock:
        _taxonomy = taxonomy


async def close_taxonomy() -> None:
    global _taxonomy
    with _lock:
        taxonomy, _taxonomy = _taxonomy, None
    if taxonomy is not None:
        await taxonomy.close()

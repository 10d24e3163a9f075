"""Tests for the cache backends and the taxonomy read-through cache."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from taxonomy_api.services.cache import MemoryCache, TaxonomyCache
from taxonomy_api.services.cache.redis_cache import RedisCache
from taxonomy_api.services.cache.taxonomy_cache import parents_key


# --- MemoryCache ---


@pytest.mark.anyio
async def test_memory_cache_roundtrip():
    cache = MemoryCache()
    await cache.set_with_ttl("k", ["a", "b"], 60)
    assert await cache.get("k") == ["a", "b"]
    assert await cache.mget(["k", "missing"]) == [["a", "b"], None]


@pytest.mark.anyio
async def test_memory_cache_expires():
    cache = MemoryCache()
    with patch("taxonomy_api.services.cache.memory_cache.time.monotonic", return_value=100.0):
        await cache.set_with_ttl("k", 1, 10)
    with patch("taxonomy_api.services.cache.memory_cache.time.monotonic", return_value=111.0):
        assert await cache.get("k") is None


@pytest.mark.anyio
async def test_memory_cache_evicts_when_full():
    cache = MemoryCache(max_entries=2)
    await cache.set_many_with_ttl({"a": 1, "b": 2, "c": 3}, 60)
    assert len(cache) == 2
    assert await cache.get("c") == 3


@pytest.mark.anyio
async def test_memory_cache_delete_many():
    cache = MemoryCache()
    await cache.set_many_with_ttl({"a": 1, "b": 2}, 60)
    assert await cache.delete_many(["a", "zzz"]) == 1
    assert await cache.get("a") is None


# --- TaxonomyCache ---


@pytest.mark.anyio
async def test_parent_ids_read_through(diamond):
    cache = diamond.cache
    assert await cache.get_parent_ids("D") == ["A", "B"]
    # Second read is served from the backend, not the store
    with patch.object(diamond.store, "parent_ids_of_many", AsyncMock(side_effect=AssertionError)):
        assert await cache.get_parent_ids("D") == ["A", "B"]


@pytest.mark.anyio
async def test_concepts_read_through(diamond):
    concepts = await diamond.cache.get_concepts(["A", "B", "missing"])
    assert set(concepts) == {"A", "B"}
    assert concepts["A"].label == "Alpha"
    cached = await diamond.cache.backend.get("taxonomy:concept:A")
    assert cached["label"] == "Alpha"


@pytest.mark.anyio
async def test_backend_failure_is_a_miss(diamond):
    backend = AsyncMock()
    backend.mget.side_effect = ConnectionError("redis down")
    backend.set_many_with_ttl.side_effect = ConnectionError("redis down")
    cache = TaxonomyCache(backend, diamond.store)

    assert await cache.get_parent_ids("D") == ["A", "B"]
    assert (await cache.get_concept("R")).label == "Root"


@pytest.mark.anyio
async def test_invalidate_subtree(diamond):
    cache = diamond.cache
    await cache.parent_ids_of_many(["R", "A", "B", "D", "E"])

    covered = await cache.invalidate_subtree("A")
    assert covered == 3  # A, D, E

    backend = cache.backend
    assert await backend.get(parents_key("A")) is None
    assert await backend.get(parents_key("D")) is None
    assert await backend.get(parents_key("E")) is None
    assert await backend.get(parents_key("B")) == ["R"]


@pytest.mark.anyio
async def test_invalidate_subtree_is_capped(diamond):
    with patch("taxonomy_api.services.cache.taxonomy_cache.MAX_INVALIDATE", 2):
        covered = await diamond.cache.invalidate_subtree("R")
    assert covered == 2


@pytest.mark.anyio
async def test_edge_delete_invalidates_cached_ancestors(diamond):
    before = await diamond.engine.ancestors("E")
    assert {c.id for c in before.concepts} == {"R", "A", "B", "D"}

    await diamond.mutations.delete_edge("A", "D")
    await diamond.mutations.delete_edge("B", "D")

    after = await diamond.engine.ancestors("E")
    assert {c.id for c in after.concepts} == {"D"}


# --- RedisCache ---


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.get = AsyncMock(return_value='["A", "B"]')
    client.mget = AsyncMock(return_value=['{"label": "Alpha"}', None])
    client.delete = AsyncMock(return_value=2)
    client.aclose = AsyncMock()
    pipe = client.pipeline.return_value.__aenter__.return_value
    pipe.execute = AsyncMock()
    return client


@pytest.mark.anyio
async def test_redis_cache_decodes_json(redis_client):
    cache = RedisCache(client=redis_client)
    assert await cache.get("taxonomy:parents:D") == ["A", "B"]
    assert await cache.mget(["taxonomy:concept:A", "missing"]) == [{"label": "Alpha"}, None]


@pytest.mark.anyio
async def test_redis_cache_pipelines_bulk_writes(redis_client):
    cache = RedisCache(client=redis_client)
    await cache.set_many_with_ttl({"k1": [1], "k2": [2]}, 60)

    redis_client.pipeline.assert_called_once_with(transaction=False)
    pipe = redis_client.pipeline.return_value.__aenter__.return_value
    pipe.set.assert_any_call("k1", "[1]", ex=60)
    pipe.set.assert_any_call("k2", "[2]", ex=60)
    pipe.execute.assert_awaited_once()


@pytest.mark.anyio
async def test_redis_cache_clear_only_touches_prefix(redis_client):
    async def scan_iter(match, count):
        assert match == "taxonomy:*"
        for key in ("taxonomy:parents:A", "taxonomy:concept:A"):
            yield key

    redis_client.scan_iter = scan_iter
    cache = RedisCache(client=redis_client)
    await cache.clear()
    redis_client.delete.assert_awaited_once_with("taxonomy:parents:A", "taxonomy:concept:A")

    await cache.close()
    redis_client.aclose.assert_awaited_once()

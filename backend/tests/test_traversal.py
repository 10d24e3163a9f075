"""Tests for the traversal engine and cycle guard."""

import asyncio
import itertools
from unittest.mock import patch

import pytest

from taxonomy_api.exceptions import CycleRejectedError, NotFoundError
from taxonomy_api.models.graph_models import PathDirection
from taxonomy_api.models.traversal_models import TruncationReason
from taxonomy_api.services.traversal import _Deadline


def _ids(concept_set):
    return {c.id for c in concept_set.concepts}


def _path_ids(result):
    return sorted(tuple(c.id for c in p.nodes) for p in result.paths)


# --- Closures ---


@pytest.mark.anyio
async def test_diamond_ancestors_deduplicated(diamond):
    result = await diamond.engine.ancestors("E")
    assert [c.id for c in result.concepts].count("R") == 1
    assert _ids(result) == {"R", "A", "B", "D"}
    assert result.truncated is False


@pytest.mark.anyio
async def test_descendants(diamond):
    result = await diamond.engine.descendants("R")
    assert _ids(result) == {"A", "B", "D", "E"}


@pytest.mark.anyio
async def test_closures_from_recursive_query_match_bfs(diamond):
    bfs = await diamond.engine.ancestors("E")
    query = await diamond.engine.ancestors("E", use_recursive_query=True)
    assert _ids(bfs) == _ids(query)
    down = await diamond.engine.descendants("R", use_recursive_query=True)
    assert _ids(down) == {"A", "B", "D", "E"}


@pytest.mark.anyio
async def test_closure_display_order(diamond):
    result = await diamond.engine.descendants("R")
    assert [c.id for c in result.concepts] == ["A", "B", "D", "E"]


@pytest.mark.anyio
async def test_closure_truncated_at_max_results(diamond):
    result = await diamond.engine.descendants("R", max_results=2)
    assert result.total == 2
    assert result.truncated is True
    assert result.truncation_reason == TruncationReason.MAX_RESULTS


@pytest.mark.anyio
async def test_closure_budget_timeout(diamond):
    with patch.object(_Deadline, "expired", return_value=True):
        result = await diamond.engine.descendants("R", budget_seconds=1)
    assert result.truncated is True
    assert result.truncation_reason == TruncationReason.TIMEOUT


@pytest.mark.anyio
async def test_unknown_node_raises(diamond):
    with pytest.raises(NotFoundError):
        await diamond.engine.ancestors("nope")


# --- Shortest path ---


@pytest.mark.anyio
async def test_shortest_path_prefers_shortcut(seed):
    t = await seed(
        {"A": "A", "B": "B", "C": "C", "D": "D"},
        [("A", "B"), ("B", "C"), ("C", "D"), ("A", "D")],
    )
    path = await t.engine.shortest_path("A", "D", PathDirection.DOWNWARD)
    assert path.node_ids == ["A", "D"]
    assert path.edges == [("A", "D")]


@pytest.mark.anyio
async def test_shortest_path_same_node(diamond):
    path = await diamond.engine.shortest_path("D", "D")
    assert path.node_ids == ["D"]
    assert path.edges == []


@pytest.mark.anyio
async def test_shortest_path_orients_edges_as_stored(diamond):
    # A up to R, then down to B
    path = await diamond.engine.shortest_path("A", "B", PathDirection.ANY)
    assert path.node_ids == ["A", "R", "B"] or path.node_ids == ["A", "D", "B"]
    for parent_id, child_id in path.edges:
        assert await diamond.store.get_edge(parent_id, child_id) is not None


@pytest.mark.anyio
async def test_shortest_path_respects_direction(diamond):
    assert await diamond.engine.shortest_path("E", "R", PathDirection.DOWNWARD) is None
    upward = await diamond.engine.shortest_path("E", "R", PathDirection.UPWARD)
    assert len(upward.edges) == 3
    assert upward.node_ids[0] == "E"
    assert upward.node_ids[-1] == "R"


@pytest.mark.anyio
async def test_shortest_path_not_found_within_hops(diamond):
    assert await diamond.engine.shortest_path("R", "E", PathDirection.DOWNWARD, max_hops=2) is None


# --- Paths to root ---


@pytest.mark.anyio
async def test_paths_to_root_complete(diamond):
    result = await diamond.engine.paths_to_root("E")
    assert _path_ids(result) == [("R", "A", "D", "E"), ("R", "B", "D", "E")]
    assert result.truncated is False
    assert all(not p.partial for p in result.paths)


@pytest.mark.anyio
async def test_paths_to_root_follow_parent_order(diamond):
    result = await diamond.engine.paths_to_root("E")
    assert [c.id for c in result.paths[0].nodes] == ["R", "A", "D", "E"]


@pytest.mark.anyio
async def test_paths_to_root_of_root(diamond):
    result = await diamond.engine.paths_to_root("R")
    assert _path_ids(result) == [("R",)]


@pytest.mark.anyio
async def test_paths_to_root_truncated_by_max_paths(diamond):
    result = await diamond.engine.paths_to_root("E", max_paths=1)
    assert result.total_paths == 1
    assert result.truncated is True
    assert result.truncation_reason == TruncationReason.MAX_PATHS


@pytest.mark.anyio
async def test_paths_to_root_partial_at_max_depth(diamond):
    result = await diamond.engine.paths_to_root("E", max_depth=1)
    assert _path_ids(result) == [("D", "E")]
    assert result.paths[0].partial is True
    assert result.truncation_reason == TruncationReason.MAX_DEPTH


@pytest.mark.anyio
async def test_paths_to_root_from_store_matches_engine(diamond):
    engine = await diamond.engine.paths_to_root("E")
    store = await diamond.engine.paths_to_root_from_store("E")
    assert _path_ids(engine) == _path_ids(store)


@pytest.mark.anyio
async def test_store_paths_flag_truncation_on_high_fan_in(seed):
    levels = 11
    concepts = {}
    edges = []
    for n in range(levels + 1):
        concepts[f"a{n}"] = (f"a{n}", n)
        concepts[f"b{n}"] = (f"b{n}", n)
        if n:
            edges += [(p, c) for p in (f"a{n - 1}", f"b{n - 1}") for c in (f"a{n}", f"b{n}")]
    t = await seed(concepts, edges)

    engine = await t.engine.paths_to_root("a11", max_paths=1)
    store = await t.engine.paths_to_root_from_store("a11", max_paths=1)
    assert engine.truncated is True
    assert store.truncated is True
    assert store.truncation_reason == TruncationReason.MAX_RESULTS


@pytest.mark.anyio
async def test_paths_to_root_budget_timeout(diamond):
    with patch.object(_Deadline, "expired", return_value=True):
        result = await diamond.engine.paths_to_root("E", budget_seconds=1)
    assert result.truncated is True
    assert result.truncation_reason == TruncationReason.TIMEOUT


# --- Cycle guard ---


@pytest.mark.anyio
async def test_back_edge_rejected(diamond):
    with pytest.raises(CycleRejectedError) as exc_info:
        await diamond.mutations.create_edge("E", "R")
    assert "E" in exc_info.value.message
    assert "R" in exc_info.value.message
    assert await diamond.store.get_edge("E", "R") is None


@pytest.mark.anyio
async def test_self_loop_rejected(diamond):
    assert await diamond.mutations.guard.would_create_cycle("A", "A") is True
    with pytest.raises(CycleRejectedError):
        await diamond.mutations.create_edge("A", "A")


@pytest.mark.anyio
async def test_concurrent_opposing_edges_admit_one(seed):
    t = await seed({"A": "Alpha", "B": "Beta"})
    results = await asyncio.gather(
        t.mutations.create_edge("A", "B"),
        t.mutations.create_edge("B", "A"),
        return_exceptions=True,
    )
    rejected = [r for r in results if isinstance(r, CycleRejectedError)]
    assert len(rejected) == 1
    stored = [await t.store.get_edge("A", "B"), await t.store.get_edge("B", "A")]
    assert sum(edge is not None for edge in stored) == 1


@pytest.mark.anyio
async def test_cross_edge_allowed(diamond):
    assert await diamond.mutations.guard.would_create_cycle("A", "B") is False
    await diamond.mutations.create_edge("A", "B")
    result = await diamond.engine.paths_to_root("E")
    assert ("R", "A", "B", "D", "E") in _path_ids(result)


@pytest.mark.anyio
async def test_no_cycle_after_random_insertions(seed):
    ids = [f"n{i}" for i in range(8)]
    t = await seed({i: i for i in ids})
    accepted = 0
    for a, b in itertools.permutations(ids, 2):
        try:
            await t.mutations.create_edge(a, b)
            accepted += 1
        except CycleRejectedError:
            pass
    assert accepted > 0
    for node in ids:
        descendants = await t.engine.descendants(node, use_recursive_query=True)
        assert node not in _ids(descendants)

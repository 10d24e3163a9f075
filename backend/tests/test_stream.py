"""Tests for streaming root paths (service and SSE endpoint)."""

import asyncio
import json

import pytest
from httpx import ASGITransport, AsyncClient

from taxonomy_api.main import app
from taxonomy_api.models.traversal_models import PathEventType, TruncationReason
from taxonomy_api.services.path_stream import PathStreamService


@pytest.fixture
async def client(taxonomy):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def fan_in(seed):
    """One leaf under 60 independent roots."""
    roots = {f"r{i:02d}": f"Root {i:02d}" for i in range(60)}
    return await seed({**roots, "leaf": ("Leaf", 1)}, [(r, "leaf") for r in roots])


async def _collect(stream):
    return [event async for event in stream]


@pytest.mark.anyio
async def test_stream_ends_with_exactly_one_done(diamond):
    events = await _collect(diamond.streams.stream("E"))
    types = [e.type for e in events]
    assert types.count(PathEventType.DONE) == 1
    assert types[-1] == PathEventType.DONE
    assert PathEventType.ERROR not in types

    paths = [[c.id for c in e.path] for e in events if e.type == PathEventType.PATH]
    assert paths == [["R", "A", "D", "E"], ["R", "B", "D", "E"]]
    assert events[-1].progress.found == 2


@pytest.mark.anyio
async def test_stream_reports_progress(fan_in):
    events = await _collect(fan_in.streams.stream("leaf"))
    progress = [e for e in events if e.type == PathEventType.PROGRESS]
    assert len(progress) == 1
    assert progress[0].progress.processed == 50
    assert events[-1].progress.found == 60


@pytest.mark.anyio
async def test_stream_unknown_node_yields_error_event(taxonomy):
    events = await _collect(taxonomy.streams.stream("missing"))
    assert len(events) == 1
    assert events[0].type == PathEventType.ERROR
    assert "missing" in events[0].error


@pytest.mark.anyio
async def test_stream_max_paths_truncation(fan_in):
    events = await _collect(fan_in.streams.stream("leaf", max_paths=5))
    done = events[-1]
    assert len([e for e in events if e.type == PathEventType.PATH]) == 5
    assert done.truncated is True
    assert done.truncation_reason == TruncationReason.MAX_PATHS


@pytest.mark.anyio
async def test_small_queue_delivers_every_path(fan_in):
    streams = PathStreamService(fan_in.engine, queue_size=1)
    events = await _collect(streams.stream("leaf"))
    assert len([e for e in events if e.type == PathEventType.PATH]) == 60


@pytest.mark.anyio
async def test_closing_consumer_cancels_producer(fan_in):
    streams = PathStreamService(fan_in.engine, queue_size=1)
    stream = streams.stream("leaf")
    first = await stream.__anext__()
    assert first.type == PathEventType.PATH
    assert len(streams.active_producers) == 1

    await stream.aclose()
    await asyncio.sleep(0)
    assert streams.active_producers == set()


@pytest.mark.anyio
async def test_verbose_emits_intermediate_paths(diamond):
    quiet = await _collect(diamond.streams.stream("E"))
    verbose = await _collect(diamond.streams.stream("E", verbose=True))
    partial = [e for e in verbose if e.type == PathEventType.PATH and e.partial]
    assert len(verbose) > len(quiet)
    assert [c.id for c in partial[0].path] == ["E"]


# --- SSE endpoint ---


@pytest.mark.anyio
async def test_sse_endpoint(client, diamond):
    response = await client.get("/api/concepts/E/paths/stream")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    blocks = [b for b in response.text.split("\n\n") if b.strip()]
    assert blocks[-1].splitlines()[1] == "event: done"
    first = blocks[0].splitlines()
    assert first[0] == "id: 0"
    assert first[1] == "event: path"
    payload = json.loads(first[2].removeprefix("data: "))
    assert [c["id"] for c in payload["path"]] == ["R", "A", "D", "E"]


@pytest.mark.anyio
async def test_sse_unknown_node_reports_error(client, taxonomy):
    response = await client.get("/api/concepts/nope/paths/stream")
    assert response.status_code == 200
    assert "event: error" in response.text

"""HTTP tests for the concept, edge and search endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from taxonomy_api.main import app
from taxonomy_api.services.search.cursor import (
    encode_cursor,
    parse_sort,
    sort_signature,
    with_tiebreaker,
)


@pytest.fixture
async def client(taxonomy):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.anyio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["x-content-type-options"] == "nosniff"


# --- Concepts ---


@pytest.mark.anyio
async def test_create_concept(client):
    response = await client.post(
        "/api/concepts",
        json={"id": "law", "label": "Law", "definition": "Rules", "variants": ["Legal"]},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == "law"
    assert data["variants"] == ["Legal"]
    assert data["level"] == 0


@pytest.mark.anyio
async def test_create_duplicate_concept_conflicts(client):
    await client.post("/api/concepts", json={"id": "law", "label": "Law"})
    response = await client.post("/api/concepts", json={"id": "law", "label": "Law again"})
    assert response.status_code == 409
    assert "law" in response.json()["detail"]


@pytest.mark.anyio
async def test_create_concept_validates_id(client):
    response = await client.post("/api/concepts", json={"id": "has space", "label": "X"})
    assert response.status_code == 422


@pytest.mark.anyio
async def test_get_concept_detail(client, diamond):
    response = await client.get("/api/concepts/D")
    assert response.status_code == 200
    data = response.json()
    assert data["label"] == "Delta"
    assert [p["id"] for p in data["parents"]] == ["A", "B"]
    assert data["child_count"] == 1


@pytest.mark.anyio
async def test_get_unknown_concept(client, taxonomy):
    response = await client.get("/api/concepts/nope")
    assert response.status_code == 404
    assert response.json() == {"detail": "Concept nope not found"}


@pytest.mark.anyio
async def test_update_concept(client, diamond):
    response = await client.put("/api/concepts/A", json={"label": "Aleph"})
    assert response.status_code == 200
    assert response.json()["label"] == "Aleph"
    # Untouched fields survive a partial update
    assert response.json()["level"] == 1

    detail = await client.get("/api/concepts/D")
    assert [p["label"] for p in detail.json()["parents"]] == ["Aleph", "Beta"]


@pytest.mark.anyio
async def test_update_unknown_concept(client, taxonomy):
    response = await client.put("/api/concepts/nope", json={"label": "X"})
    assert response.status_code == 404


@pytest.mark.anyio
async def test_delete_concept(client, diamond):
    response = await client.delete("/api/concepts/D")
    assert response.status_code == 204
    assert (await client.get("/api/concepts/D")).status_code == 404
    assert (await client.delete("/api/concepts/D")).status_code == 404

    paths = await client.get("/api/concepts/E/paths")
    assert [[n["id"] for n in p["nodes"]] for p in paths.json()["paths"]] == [["E"]]


@pytest.mark.anyio
async def test_list_concepts_by_level(client, diamond):
    response = await client.get("/api/concepts", params={"level": 1})
    assert [i["id"] for i in response.json()["items"]] == ["A", "B"]


@pytest.mark.anyio
async def test_list_concepts_cursor_walk(client, diamond):
    first = (await client.get("/api/concepts", params={"page_size": 3})).json()
    assert [i["id"] for i in first["items"]] == ["R", "A", "B"]
    second = (
        await client.get(
            "/api/concepts", params={"page_size": 3, "cursor": first["page"]["next_cursor"]}
        )
    ).json()
    assert [i["id"] for i in second["items"]] == ["D", "E"]
    assert second["page"]["next_cursor"] is None
    assert second["page"]["prev_cursor"] is not None


@pytest.mark.anyio
async def test_stats(client, diamond):
    response = await client.get("/api/concepts/admin/stats")
    assert response.json() == {"total_nodes": 5, "total_edges": 5, "max_depth": 3}


@pytest.mark.anyio
async def test_reindex(client, diamond):
    response = await client.post("/api/concepts/admin/reindex")
    assert response.status_code == 200
    assert response.json() == {"indexed": 5, "failed": 0}


# --- Relations and traversal ---


@pytest.mark.anyio
async def test_children_listing(client, diamond):
    response = await client.get("/api/concepts/R/children")
    data = response.json()
    assert data["source"] == "search"
    assert data["total"] == 2
    assert [i["id"] for i in data["items"]] == ["A", "B"]


@pytest.mark.anyio
async def test_parents_listing_pages(client, diamond):
    first = (await client.get("/api/concepts/D/parents", params={"page_size": 1})).json()
    assert [i["id"] for i in first["items"]] == ["A"]
    second = (
        await client.get(
            "/api/concepts/D/parents",
            params={"page_size": 1, "cursor": first["page"]["next_cursor"]},
        )
    ).json()
    assert [i["id"] for i in second["items"]] == ["B"]


@pytest.mark.anyio
async def test_invalid_cursor_is_400(client, diamond):
    response = await client.get("/api/concepts/R/children", params={"cursor": "garbage"})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_cursor_from_other_listing_is_400(client, diamond):
    page = (await client.get("/api/concepts/D/parents", params={"page_size": 1})).json()
    response = await client.get(
        "/api/concepts/R/children", params={"cursor": page["page"]["next_cursor"]}
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_ancestors_and_descendants(client, diamond):
    up = (await client.get("/api/concepts/E/ancestors")).json()
    assert {c["id"] for c in up["concepts"]} == {"R", "A", "B", "D"}
    down = (await client.get("/api/concepts/R/descendants", params={"fresh": True})).json()
    assert {c["id"] for c in down["concepts"]} == {"A", "B", "D", "E"}
    assert down["truncated"] is False


@pytest.mark.anyio
async def test_paths_from_store(client, diamond):
    response = await client.get("/api/concepts/E/paths", params={"source": "store"})
    data = response.json()
    assert data["total_paths"] == 2
    assert sorted([n["id"] for n in p["nodes"]] for p in data["paths"]) == [
        ["R", "A", "D", "E"],
        ["R", "B", "D", "E"],
    ]


@pytest.mark.anyio
async def test_paths_max_depth(client, diamond):
    response = await client.get("/api/concepts/E/paths", params={"max_depth": 1})
    data = response.json()
    assert data["truncated"] is True
    assert data["truncation_reason"] == "max_depth"
    assert data["paths"][0]["partial"] is True


# --- Edges ---


@pytest.mark.anyio
async def test_create_and_delete_edge(client, diamond):
    response = await client.post("/api/edges", json={"parent_id": "A", "child_id": "B"})
    assert response.status_code == 201
    assert (await client.get("/api/edges/A/B")).status_code == 200

    assert (await client.delete("/api/edges/A/B")).status_code == 204
    assert (await client.get("/api/edges/A/B")).status_code == 404
    assert (await client.delete("/api/edges/A/B")).status_code == 404


@pytest.mark.anyio
async def test_cycle_rejected_with_400(client, diamond):
    response = await client.post("/api/edges", json={"parent_id": "E", "child_id": "R"})
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert "E" in detail and "R" in detail
    assert (await client.get("/api/edges/E/R")).status_code == 404


@pytest.mark.anyio
async def test_duplicate_edge_conflicts(client, diamond):
    response = await client.post("/api/edges", json={"parent_id": "R", "child_id": "A"})
    assert response.status_code == 409


@pytest.mark.anyio
async def test_edge_to_unknown_concept(client, diamond):
    response = await client.post("/api/edges", json={"parent_id": "R", "child_id": "ghost"})
    assert response.status_code == 404


# --- Search ---


@pytest.mark.anyio
async def test_search_endpoint(client, diamond):
    response = await client.get("/api/search", params={"q": "alpha"})
    assert response.status_code == 200
    data = response.json()
    assert data["items"][0]["id"] == "A"
    assert data["source"] == "search"


@pytest.mark.anyio
async def test_search_sorted_by_label(client, diamond):
    response = await client.get("/api/search", params={"sort": ["label:desc"]})
    labels = [i["label"] for i in response.json()["items"]]
    assert labels == sorted(labels, reverse=True)


@pytest.mark.anyio
async def test_search_unknown_sort_is_422(client, diamond):
    response = await client.get("/api/search", params={"sort": "color:asc"})
    assert response.status_code == 422


@pytest.mark.anyio
async def test_search_cursor_bound_to_sort(client, diamond):
    page = (
        await client.get("/api/search", params={"sort": "label", "page_size": 2})
    ).json()
    response = await client.get(
        "/api/search",
        params={"sort": "level", "page_size": 2, "cursor": page["page"]["next_cursor"]},
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_search_cursor_with_wrong_value_types_is_400(client, diamond):
    signature = sort_signature(with_tiebreaker(parse_sort(None)))
    cursor = encode_cursor(["not-a-score", 5], signature)
    response = await client.get("/api/search", params={"q": "alpha", "cursor": cursor})
    assert response.status_code == 400

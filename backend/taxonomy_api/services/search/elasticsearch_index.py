"""Elasticsearch index adapter over the REST API (httpx.AsyncClient)."""

from __future__ import annotations

import json
import logging

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from taxonomy_api.exceptions import BackendUnavailableError, InvalidCursorError
from taxonomy_api.models.search_models import (
    SearchDocument,
    SearchFilters,
    SearchHit,
    SearchHits,
    SortField,
    SortKey,
)
from taxonomy_api.services.search.base import BaseSearchIndex

logger = logging.getLogger(__name__)

INDEX_SETTINGS = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
        "analysis": {
            "analyzer": {
                "custom_analyzer": {
                    "type": "custom",
                    "tokenizer": "standard",
                    "filter": ["lowercase", "asciifolding"],
                },
            },
        },
    },
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "label": {
                "type": "text",
                "analyzer": "custom_analyzer",
                "fields": {"keyword": {"type": "keyword"}},
            },
            "definition": {
                "type": "text",
                "analyzer": "custom_analyzer",
                "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
            },
            "level": {"type": "integer"},
            "variants": {
                "type": "text",
                "analyzer": "custom_analyzer",
                "fields": {"keyword": {"type": "keyword"}},
            },
            "parent_ids": {"type": "keyword"},
        },
    },
}

SEARCH_FIELDS = ["label^3", "variants^2", "definition"]

# Text fields sort on their keyword sub-field
_SORT_FIELDS = {
    SortField.SCORE: "_score",
    SortField.LABEL: "label.keyword",
    SortField.LEVEL: "level",
    SortField.ID: "id",
}


class _Retryable(Exception):
    """Wraps a 5xx response so tenacity retries it like a transport error."""


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=4),
    retry=retry_if_exception_type((httpx.TransportError, _Retryable)),
    reraise=True,
)


class ElasticsearchIndex(BaseSearchIndex):
    def __init__(
        self,
        url: str = "http://localhost:9200",
        index_name: str = "concepts",
        client: httpx.AsyncClient | None = None,
        refresh: bool = False,
    ):
        self.url = url.rstrip("/")
        self.index_name = index_name
        self.refresh = refresh
        self._client = client or httpx.AsyncClient(base_url=self.url, timeout=30.0)
        self._index_ready = False

    @_retry_transient
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        resp = await self._client.request(method, path, **kwargs)
        if resp.status_code >= 500:
            raise _Retryable(f"{resp.status_code} {resp.text[:200]}")
        return resp

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._send(method, path, **kwargs)
        except (httpx.TransportError, _Retryable) as e:
            raise BackendUnavailableError(f"Elasticsearch unavailable: {e}") from e

    async def ensure_index(self) -> None:
        """Create the index with its analyzer and mapping if it does not exist."""
        if self._index_ready:
            return
        resp = await self._request("HEAD", f"/{self.index_name}")
        if resp.status_code == 404:
            created = await self._request("PUT", f"/{self.index_name}", json=INDEX_SETTINGS)
            # 400 resource_already_exists when another worker won the race
            if created.status_code >= 400 and "resource_already_exists" not in created.text:
                created.raise_for_status()
            logger.info("Created Elasticsearch index: %s", self.index_name)
        self._index_ready = True

    def _refresh_param(self) -> dict:
        return {"refresh": "wait_for"} if self.refresh else {}

    async def index(self, doc: SearchDocument) -> None:
        await self.ensure_index()
        resp = await self._request(
            "PUT",
            f"/{self.index_name}/_doc/{doc.id}",
            json=doc.model_dump(),
            params=self._refresh_param(),
        )
        resp.raise_for_status()

    async def index_many(self, docs: list[SearchDocument]) -> int:
        if not docs:
            return 0
        await self.ensure_index()
        lines: list[str] = []
        for doc in docs:
            lines.append(json.dumps({"index": {"_index": self.index_name, "_id": doc.id}}))
            lines.append(json.dumps(doc.model_dump()))
        resp = await self._request(
            "POST",
            "/_bulk",
            content="\n".join(lines) + "\n",
            headers={"Content-Type": "application/x-ndjson"},
            params=self._refresh_param(),
        )
        resp.raise_for_status()
        body = resp.json()
        if not body.get("errors"):
            return 0
        failed = [item for item in body.get("items", []) if item.get("index", {}).get("error")]
        logger.error("Failed to index %d of %d concepts", len(failed), len(docs))
        return len(failed)

    async def delete(self, concept_id: str) -> None:
        resp = await self._request(
            "DELETE", f"/{self.index_name}/_doc/{concept_id}", params=self._refresh_param()
        )
        if resp.status_code != 404:
            resp.raise_for_status()

    def _build_query(self, query: str | None, filters: SearchFilters) -> dict:
        must: list[dict] = []
        if query:
            must.append({
                "multi_match": {
                    "query": query,
                    "fields": SEARCH_FIELDS,
                    "type": "best_fields",
                    "fuzziness": "AUTO",
                }
            })
        else:
            must.append({"match_all": {}})

        filter_clauses: list[dict] = []
        if filters.level is not None:
            filter_clauses.append({"term": {"level": filters.level}})
        if filters.parent_id is not None:
            filter_clauses.append({"term": {"parent_ids": filters.parent_id}})
        return {"bool": {"must": must, "filter": filter_clauses}}

    async def search(
        self,
        query: str | None,
        filters: SearchFilters,
        sort: list[SortKey],
        search_after: list | None,
        size: int,
    ) -> SearchHits:
        await self.ensure_index()
        body: dict = {
            "size": size,
            "query": self._build_query(query, filters),
            "sort": [{_SORT_FIELDS[k.field]: {"order": k.order.value}} for k in sort],
            "track_scores": True,
            "track_total_hits": True,
        }
        if search_after is not None:
            body["search_after"] = search_after

        resp = await self._request("POST", f"/{self.index_name}/_search", json=body)
        if search_after is not None and 400 <= resp.status_code < 500:
            logger.info("Search rejected search_after %r: %s", search_after, resp.status_code)
            raise InvalidCursorError("Cursor does not match the index sort")
        resp.raise_for_status()
        data = resp.json()
        total = data["hits"]["total"]
        hits = [
            SearchHit(
                document=SearchDocument.model_validate(hit["_source"]),
                score=hit.get("_score"),
                sort_values=hit["sort"],
            )
            for hit in data["hits"]["hits"]
        ]
        return SearchHits(
            hits=hits,
            total=total if isinstance(total, int) else total["value"],
            took_ms=data.get("took", 0),
        )

    async def clear(self) -> None:
        resp = await self._request(
            "DELETE", f"/{self.index_name}", params={"ignore_unavailable": "true"}
        )
        if resp.status_code != 404:
            resp.raise_for_status()
        self._index_ready = False
        await self.ensure_index()
        logger.info("Cleared Elasticsearch index: %s", self.index_name)

    async def close(self) -> None:
        await self._client.aclose()

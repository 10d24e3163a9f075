"""Service configuration read from environment variables."""

from __future__ import annotations

import os
from enum import Enum

from pydantic import BaseModel


class CacheBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


class SearchBackend(str, Enum):
    MEMORY = "memory"
    ELASTICSEARCH = "elasticsearch"


class Settings(BaseModel):
    db_path: str = "taxonomy.db"
    db_replicas: list[str] = []
    cache_backend: CacheBackend = CacheBackend.MEMORY
    redis_url: str = "redis://localhost:6379/0"
    search_backend: SearchBackend = SearchBackend.MEMORY
    es_url: str = "http://localhost:9200"
    es_index_name: str = "concepts"
    parents_ttl: int = 60 * 15
    concept_ttl: int = 60 * 30


def _split_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def settings_from_env() -> Settings:
    """Build Settings from environment variables."""
    cache_str = os.environ.get("TAXONOMY_CACHE", "memory")
    try:
        cache_backend = CacheBackend(cache_str)
    except ValueError:
        cache_backend = CacheBackend.MEMORY

    search_str = os.environ.get("TAXONOMY_SEARCH", "memory")
    try:
        search_backend = SearchBackend(search_str)
    except ValueError:
        search_backend = SearchBackend.MEMORY

    return Settings(
        db_path=os.environ.get("TAXONOMY_DB_PATH", "taxonomy.db"),
        db_replicas=_split_list(os.environ.get("TAXONOMY_DB_REPLICAS", "")),
        cache_backend=cache_backend,
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        search_backend=search_backend,
        es_url=os.environ.get("ES_URL", "http://localhost:9200"),
        es_index_name=os.environ.get("ES_INDEX_NAME", "concepts"),
        parents_ttl=int(os.environ.get("TAXONOMY_PARENTS_TTL", 60 * 15)),
        concept_ttl=int(os.environ.get("TAXONOMY_CONCEPT_TTL", 60 * 30)),
    )

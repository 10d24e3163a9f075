"""Key/value cache in front of repeated parent and concept lookups."""

from taxonomy_api.services.cache.base import BaseCache
from taxonomy_api.services.cache.memory_cache import MemoryCache
from taxonomy_api.services.cache.taxonomy_cache import TaxonomyCache

__all__ = ["BaseCache", "MemoryCache", "TaxonomyCache"]

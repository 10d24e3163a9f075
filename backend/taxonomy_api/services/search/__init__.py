"""Full-text search index adapters and cursor-paginated listings."""

from taxonomy_api.services.search.base import BaseSearchIndex
from taxonomy_api.services.search.memory_index import MemorySearchIndex
from taxonomy_api.services.search.search_service import SearchService

__all__ = ["BaseSearchIndex", "MemorySearchIndex", "SearchService"]

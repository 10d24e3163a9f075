"""Abstract base class for cache backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseCache(ABC):
    """JSON-serializable values under string keys, each with its own TTL.

    Implementations may raise on connection problems; TaxonomyCache turns
    every failure into a miss.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def mget(self, keys: list[str]) -> list[Any | None]:
        """Values in the order of `keys`; None for misses."""

    @abstractmethod
    async def set_many_with_ttl(self, items: dict[str, Any], ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete_many(self, keys: list[str]) -> int:
        """Delete keys, returning how many existed."""

    @abstractmethod
    async def clear(self) -> None:
        ...

    async def close(self) -> None:
        """Release connections."""

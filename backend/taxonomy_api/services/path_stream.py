"""Streams root paths to a consumer while the DFS is still running.

The DFS runs as its own task and hands events over a bounded queue. A slow
consumer makes the producer wait on `put` (backpressure, nothing is
dropped); closing the consumer cancels the producer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from taxonomy_api.exceptions import TaxonomyError
from taxonomy_api.models.traversal_models import PathEvent, PathEventType
from taxonomy_api.services.traversal import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PATHS,
    TraversalEngine,
)

logger = logging.getLogger(__name__)

QUEUE_SIZE = 64

TERMINAL_EVENTS = frozenset({PathEventType.DONE, PathEventType.ERROR})


class PathStreamService:
    def __init__(self, engine: TraversalEngine, queue_size: int = QUEUE_SIZE):
        self.engine = engine
        self.queue_size = queue_size
        self.active_producers: set[asyncio.Task] = set()

    async def stream(
        self,
        node_id: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_paths: int = DEFAULT_MAX_PATHS,
        verbose: bool = False,
        budget_seconds: float | None = None,
    ) -> AsyncIterator[PathEvent]:
        """Yield path/progress events, then exactly one done or error event."""
        queue: asyncio.Queue[PathEvent] = asyncio.Queue(maxsize=self.queue_size)

        async def produce() -> None:
            try:
                async for event in self.engine.walk_paths_to_root(
                    node_id,
                    max_depth=max_depth,
                    max_paths=max_paths,
                    verbose=verbose,
                    budget_seconds=budget_seconds,
                ):
                    await queue.put(event)
            except TaxonomyError as e:
                await queue.put(PathEvent(type=PathEventType.ERROR, error=e.message))
            except Exception:
                logger.exception("Path stream for %s failed", node_id)
                await queue.put(PathEvent(type=PathEventType.ERROR, error="Internal error"))

        task = asyncio.create_task(produce())
        self.active_producers.add(task)
        task.add_done_callback(self.active_producers.discard)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.type in TERMINAL_EVENTS:
                    return
        finally:
            if not task.done():
                logger.debug("Path stream for %s closed early, cancelling producer", node_id)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

"""Traversal engine: closures, shortest path and paths-to-root enumeration.

Every loop awaits a backend call (or yields explicitly) between layers and
frames, so a cancelled request stops the traversal at the next iteration.
No traversal recurses: BFS runs layer by layer, DFS keeps an explicit stack.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from taxonomy_api.exceptions import NotFoundError
from taxonomy_api.models.concept_models import Concept
from taxonomy_api.models.graph_models import PathDirection
from taxonomy_api.models.traversal_models import (
    ConceptSet,
    PathEvent,
    PathEventType,
    PathProgress,
    PathsToRootResult,
    RootPath,
    TruncationReason,
)
from taxonomy_api.services.cache.taxonomy_cache import TaxonomyCache
from taxonomy_api.services.store.base import BaseGraphStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 10_000
DEFAULT_MAX_DEPTH = 25
DEFAULT_MAX_PATHS = 1000
DEFAULT_MAX_HOPS = 10
MAX_HOPS = 20
PROGRESS_INTERVAL = 50


def display_order(concepts: list[Concept]) -> list[Concept]:
    return sorted(concepts, key=lambda c: (c.level, c.label, c.id))


class _Deadline:
    def __init__(self, budget_seconds: float | None):
        self._at = time.monotonic() + budget_seconds if budget_seconds else None

    def expired(self) -> bool:
        return self._at is not None and time.monotonic() >= self._at


@dataclass
class HopPath:
    """Fewest-hop route; edges are (parent_id, child_id) as stored."""

    node_ids: list[str]
    edges: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class _Frame:
    node_id: str
    path: tuple[str, ...]  # target -> ... -> node_id
    depth: int


class TraversalEngine:
    def __init__(self, store: BaseGraphStore, cache: TaxonomyCache):
        self.store = store
        self.cache = cache

    async def require_concept(self, concept_id: str) -> Concept:
        concept = await self.cache.get_concept(concept_id)
        if concept is None:
            raise NotFoundError(f"Concept {concept_id} not found")
        return concept

    # --- closures ---

    async def ancestors(
        self,
        node_id: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        budget_seconds: float | None = None,
        use_recursive_query: bool = False,
    ) -> ConceptSet:
        """Transitive child -> parent closure through cached parent sets."""
        await self.require_concept(node_id)
        if use_recursive_query:
            rows = await self.store.recursive_ancestors(node_id, max_results + 1)
            return self._closure_result(node_id, rows, max_results)
        return await self._closure_bfs(
            node_id, self.cache.parent_ids_of_many, max_results, budget_seconds
        )

    async def descendants(
        self,
        node_id: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        budget_seconds: float | None = None,
        use_recursive_query: bool = False,
    ) -> ConceptSet:
        """Transitive parent -> child closure."""
        await self.require_concept(node_id)
        if use_recursive_query:
            rows = await self.store.recursive_descendants(node_id, max_results + 1)
            return self._closure_result(node_id, rows, max_results)
        return await self._closure_bfs(
            node_id, self.store.child_ids_of_many, max_results, budget_seconds
        )

    @staticmethod
    def _closure_result(node_id: str, rows: list[Concept], max_results: int) -> ConceptSet:
        truncated = len(rows) > max_results
        concepts = display_order(rows[:max_results])
        return ConceptSet(
            node_id=node_id,
            concepts=concepts,
            total=len(concepts),
            truncated=truncated,
            truncation_reason=TruncationReason.MAX_RESULTS if truncated else None,
        )

    async def _closure_bfs(self, node_id, expand, max_results, budget_seconds) -> ConceptSet:
        deadline = _Deadline(budget_seconds)
        seen: set[str] = {node_id}
        found: list[str] = []
        frontier = [node_id]
        reason: TruncationReason | None = None

        while frontier and reason is None:
            if deadline.expired():
                reason = TruncationReason.TIMEOUT
                break
            neighbors = await expand(frontier)
            next_frontier: list[str] = []
            for current in frontier:
                for other in neighbors.get(current, []):
                    if other in seen:
                        continue
                    if len(found) >= max_results:
                        reason = TruncationReason.MAX_RESULTS
                        break
                    seen.add(other)
                    found.append(other)
                    next_frontier.append(other)
                if reason:
                    break
            frontier = next_frontier

        resolved = await self.cache.get_concepts(found)
        concepts = display_order([resolved[i] for i in found if i in resolved])
        return ConceptSet(
            node_id=node_id,
            concepts=concepts,
            total=len(concepts),
            truncated=reason is not None,
            truncation_reason=reason,
        )

    # --- shortest path ---

    async def shortest_path(
        self,
        from_id: str,
        to_id: str,
        direction: PathDirection = PathDirection.ANY,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> HopPath | None:
        """Layer-wise BFS. Fewest hops wins; ties go to the first edge discovered."""
        await asyncio.gather(self.require_concept(from_id), self.require_concept(to_id))
        if from_id == to_id:
            return HopPath(node_ids=[from_id])

        down = direction in (PathDirection.ANY, PathDirection.DOWNWARD)
        up = direction in (PathDirection.ANY, PathDirection.UPWARD)
        # node -> (predecessor, (parent_id, child_id) of the edge used)
        came_from: dict[str, tuple[str, tuple[str, str]] | None] = {from_id: None}
        frontier = [from_id]

        for _ in range(min(max_hops, MAX_HOPS)):
            if not frontier:
                break
            children, parents = await asyncio.gather(
                self.store.child_ids_of_many(frontier) if down else _empty(),
                self.cache.parent_ids_of_many(frontier) if up else _empty(),
            )
            next_frontier: list[str] = []
            for current in frontier:
                steps = [(c, (current, c)) for c in children.get(current, [])]
                steps += [(p, (p, current)) for p in parents.get(current, [])]
                for neighbor, edge in steps:
                    if neighbor in came_from:
                        continue
                    came_from[neighbor] = (current, edge)
                    if neighbor == to_id:
                        return _reconstruct(to_id, came_from)
                    next_frontier.append(neighbor)
            frontier = next_frontier
        return None

    # --- paths to root ---

    async def walk_paths_to_root(
        self,
        node_id: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_paths: int = DEFAULT_MAX_PATHS,
        verbose: bool = False,
        budget_seconds: float | None = None,
    ) -> AsyncIterator[PathEvent]:
        """Depth-first enumeration of root paths as a stream of events.

        Yields `path` events as paths are found, `progress` every
        PROGRESS_INTERVAL visits, and finishes with one `done` event.
        Paths run root -> ... -> node. A path cut at `max_depth` hops is
        emitted with partial=True. In verbose mode the path to every visited
        node is emitted as well.
        """
        start = await self.require_concept(node_id)
        deadline = _Deadline(budget_seconds)
        resolved: dict[str, Concept] = {start.id: start}
        stack = [_Frame(node_id, (node_id,), 0)]
        found = 0
        processed = 0
        depth_limited = False
        reason: TruncationReason | None = None

        async def resolve(path: tuple[str, ...]) -> list[Concept]:
            missing = [i for i in path if i not in resolved]
            if missing:
                resolved.update(await self.cache.get_concepts(missing))
            return [resolved[i] for i in reversed(path) if i in resolved]

        while stack:
            if found >= max_paths:
                reason = TruncationReason.MAX_PATHS
                break
            if deadline.expired():
                reason = TruncationReason.TIMEOUT
                break
            # Cancellation point even when every lookup is a cache hit
            await asyncio.sleep(0)

            frame = stack.pop()
            processed += 1
            if processed % PROGRESS_INTERVAL == 0:
                yield PathEvent(
                    type=PathEventType.PROGRESS,
                    progress=PathProgress(found=found, processed=processed),
                )

            parent_ids = await self.cache.get_parent_ids(frame.node_id)
            if not parent_ids:
                found += 1
                yield PathEvent(type=PathEventType.PATH, path=await resolve(frame.path), partial=False)
                continue

            if frame.depth >= max_depth:
                depth_limited = True
                found += 1
                yield PathEvent(type=PathEventType.PATH, path=await resolve(frame.path), partial=True)
                continue

            if verbose:
                yield PathEvent(type=PathEventType.PATH, path=await resolve(frame.path), partial=True)

            # Reversed so the first parent is explored first
            for parent_id in reversed(parent_ids):
                if parent_id in frame.path:
                    logger.warning("Cycle through %s skipped while walking %s", parent_id, node_id)
                    continue
                stack.append(_Frame(parent_id, frame.path + (parent_id,), frame.depth + 1))

        if reason is None and depth_limited:
            reason = TruncationReason.MAX_DEPTH
        yield PathEvent(
            type=PathEventType.DONE,
            progress=PathProgress(found=found, processed=processed),
            truncated=reason is not None,
            truncation_reason=reason,
        )

    async def paths_to_root(
        self,
        node_id: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_paths: int = DEFAULT_MAX_PATHS,
        budget_seconds: float | None = None,
    ) -> PathsToRootResult:
        paths: list[RootPath] = []
        done: PathEvent | None = None
        async for event in self.walk_paths_to_root(
            node_id, max_depth, max_paths, budget_seconds=budget_seconds
        ):
            if event.type == PathEventType.PATH:
                paths.append(RootPath(nodes=event.path, partial=bool(event.partial)))
            elif event.type == PathEventType.DONE:
                done = event
        return PathsToRootResult(
            node_id=node_id,
            paths=paths,
            total_paths=len(paths),
            nodes_visited=done.progress.processed if done else 0,
            truncated=bool(done and done.truncated),
            truncation_reason=done.truncation_reason if done else None,
        )

    async def paths_to_root_from_store(
        self,
        node_id: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_paths: int = DEFAULT_MAX_PATHS,
    ) -> PathsToRootResult:
        """Same enumeration as one recursive query inside the store."""
        await self.require_concept(node_id)
        rows, exhausted = await self.store.recursive_paths_to_root(
            node_id, max_depth, max_paths + 1
        )
        truncated = len(rows) > max_paths
        rows = rows[:max_paths]
        resolved = await self.cache.get_concepts(list({i for ids, _ in rows for i in ids}))
        paths = [
            RootPath(nodes=[resolved[i] for i in ids if i in resolved], partial=partial)
            for ids, partial in rows
        ]
        reason = None
        if truncated:
            reason = TruncationReason.MAX_PATHS
        elif exhausted:
            # The walk stopped before visiting every ancestor path
            logger.warning("Recursive root walk from %s hit its row budget", node_id)
            reason = TruncationReason.MAX_RESULTS
        elif any(p.partial for p in paths):
            reason = TruncationReason.MAX_DEPTH
        return PathsToRootResult(
            node_id=node_id,
            paths=paths,
            total_paths=len(paths),
            truncated=reason is not None,
            truncation_reason=reason,
        )


async def _empty() -> dict[str, list[str]]:
    return {}


def _reconstruct(
    to_id: str, came_from: dict[str, tuple[str, tuple[str, str]] | None]
) -> HopPath:
    node_ids = [to_id]
    edges: list[tuple[str, str]] = []
    step = came_from[to_id]
    while step is not None:
        previous, edge = step
        node_ids.append(previous)
        edges.append(edge)
        step = came_from[previous]
    node_ids.reverse()
    edges.reverse()
    return HopPath(node_ids=node_ids, edges=edges)

"""Graph exploration views: subgraph, neighbors, clusters, shortest path."""

from __future__ import annotations

import asyncio
import logging
import time

from taxonomy_api.exceptions import NotFoundError
from taxonomy_api.models.concept_models import Concept, ConceptListItem, to_list_item
from taxonomy_api.models.graph_models import (
    ClusterInfo,
    ClustersResponse,
    ClusterStats,
    GraphNode,
    NeighborsDirection,
    NeighborsPagination,
    NeighborsResponse,
    PathDirection,
    ShortestPathResponse,
    SubgraphDirection,
    SubgraphResponse,
    make_edge,
)
from taxonomy_api.models.traversal_models import TruncationReason
from taxonomy_api.services.store.base import BaseGraphStore
from taxonomy_api.services.traversal import DEFAULT_MAX_HOPS, TraversalEngine

logger = logging.getLogger(__name__)

MAX_SUBGRAPH_DEPTH = 4
MAX_SUBGRAPH_NODES = 500
MAX_NEIGHBOR_OFFSET = 10_000


async def _no_relations() -> list:
    return []


class GraphService:
    def __init__(self, store: BaseGraphStore, engine: TraversalEngine):
        self.store = store
        self.engine = engine

    async def _list_items(
        self, concepts: list[Concept], include_variants: bool = True
    ) -> list[ConceptListItem]:
        variants = (
            await self.store.variants_of_many([c.id for c in concepts])
            if include_variants and concepts
            else {}
        )
        return [to_list_item(c, variants.get(c.id)) for c in concepts]

    # --- subgraph ---

    async def subgraph(
        self,
        center_id: str,
        depth: int = 2,
        direction: SubgraphDirection = SubgraphDirection.BOTH,
        max_nodes: int = 100,
        include_details: bool = True,
        budget_seconds: float | None = None,
    ) -> SubgraphResponse:
        """Breadth-first neighborhood of a concept.

        Each layer issues one batched children query and one batched parents
        query concurrently. Stops at `depth` layers or `max_nodes` nodes;
        nodes found in the last layer but cut by `max_nodes` are counted in
        `truncated_nodes`.
        """
        center = await self.store.get_concept(center_id)
        if center is None:
            raise NotFoundError(f"Concept {center_id} not found")
        depth = max(0, min(depth, MAX_SUBGRAPH_DEPTH))
        max_nodes = max(1, min(max_nodes, MAX_SUBGRAPH_NODES))
        deadline = time.monotonic() + budget_seconds if budget_seconds else None

        nodes: dict[str, Concept] = {center_id: center}
        layer_of: dict[str, int] = {center_id: 0}
        edges: dict[tuple[str, str], None] = {}
        cut: set[str] = set()
        reason: TruncationReason | None = None
        frontier = [center_id]
        down = direction in (SubgraphDirection.DOWN, SubgraphDirection.BOTH)
        up = direction in (SubgraphDirection.UP, SubgraphDirection.BOTH)

        for layer in range(1, depth + 1):
            if not frontier:
                break
            if deadline is not None and time.monotonic() >= deadline:
                reason = TruncationReason.TIMEOUT
                break
            children, parents = await asyncio.gather(
                self.store.children_of_many(frontier) if down else _no_relations(),
                self.store.parents_of_many(frontier) if up else _no_relations(),
            )
            found: list[tuple[Concept, tuple[str, str]]] = [
                (child, (parent_id, child.id)) for parent_id, child in children
            ]
            found += [(parent, (parent.id, child_id)) for child_id, parent in parents]

            next_frontier: list[str] = []
            for concept, edge in found:
                edges[edge] = None
                if concept.id in nodes:
                    continue
                if len(nodes) >= max_nodes:
                    cut.add(concept.id)
                    continue
                nodes[concept.id] = concept
                layer_of[concept.id] = layer
                next_frontier.append(concept.id)
            if cut:
                reason = TruncationReason.MAX_NODES
                break
            frontier = next_frontier

        items = await self._list_items(list(nodes.values()), include_variants=include_details)
        graph_nodes = [
            GraphNode(**item.model_dump(), is_center=item.id == center_id, depth=layer_of[item.id])
            for item in items
        ]
        graph_edges = [
            make_edge(p, c) for (p, c) in edges if p in nodes and c in nodes
        ]
        return SubgraphResponse(
            center_id=center_id,
            nodes=graph_nodes,
            edges=graph_edges,
            depth=depth,
            direction=direction,
            total_nodes=len(graph_nodes),
            total_edges=len(graph_edges),
            truncated=reason is not None,
            truncated_nodes=len(cut),
            truncation_reason=reason,
        )

    # --- neighbors ---

    async def neighbors(
        self,
        node_id: str,
        direction: NeighborsDirection = NeighborsDirection.BOTH,
        limit: int = 50,
        parents_offset: int = 0,
        children_offset: int = 0,
    ) -> NeighborsResponse:
        """One-hop listing with independent offset paging per direction."""
        if await self.store.get_concept(node_id) is None:
            raise NotFoundError(f"Concept {node_id} not found")
        parents_offset = min(max(parents_offset, 0), MAX_NEIGHBOR_OFFSET)
        children_offset = min(max(children_offset, 0), MAX_NEIGHBOR_OFFSET)
        want_parents = direction in (NeighborsDirection.PARENTS, NeighborsDirection.BOTH)
        want_children = direction in (NeighborsDirection.CHILDREN, NeighborsDirection.BOTH)

        async def parents_side():
            if not want_parents:
                return [], 0
            return await asyncio.gather(
                self.store.list_parents(node_id, limit, parents_offset),
                self.store.count_parents(node_id),
            )

        async def children_side():
            if not want_children:
                return [], 0
            return await asyncio.gather(
                self.store.list_children(node_id, limit, children_offset),
                self.store.count_children(node_id),
            )

        (parents, total_parents), (children, total_children) = await asyncio.gather(
            parents_side(), children_side()
        )
        return NeighborsResponse(
            node_id=node_id,
            parents=await self._list_items(parents),
            children=await self._list_items(children),
            parent_edges=[make_edge(p.id, node_id) for p in parents],
            child_edges=[make_edge(node_id, c.id) for c in children],
            pagination=NeighborsPagination(
                limit=limit,
                parents_offset=parents_offset,
                children_offset=children_offset,
                total_parents=total_parents,
                total_children=total_children,
                has_more_parents=parents_offset + len(parents) < total_parents,
                has_more_children=children_offset + len(children) < total_children,
            ),
        )

    # --- clusters ---

    async def clusters(self, level: int = 1, limit: int = 50) -> ClustersResponse:
        """Representatives at one level with estimated subtree sizes.

        Descendant counts are a heuristic: d * (1 + b + b^2), where d is the
        exact direct child count and b the child count of the first child.
        """
        representatives, total_nodes, total_clusters = await asyncio.gather(
            self.store.list_by_level(level, limit),
            self.store.count_concepts(),
            self.store.count_concepts(level),
        )
        ids = [c.id for c in representatives]
        child_ids = await self.store.child_ids_of_many(ids)
        first_children = [kids[0] for kids in child_ids.values() if kids]
        grandchild_ids, edges, items = await asyncio.gather(
            self.store.child_ids_of_many(first_children),
            self.store.edges_among(ids),
            self._list_items(representatives),
        )

        clusters: list[ClusterInfo] = []
        for item in items:
            kids = child_ids.get(item.id, [])
            direct = len(kids)
            if direct:
                branching = len(grandchild_ids.get(kids[0], [])) or 1
                estimate = direct * (1 + branching + branching * branching)
            else:
                estimate = 0
            clusters.append(
                ClusterInfo(
                    node=item,
                    direct_child_count=direct,
                    estimated_descendant_count=estimate,
                    is_leaf=direct == 0,
                )
            )

        avg = (
            round(sum(c.estimated_descendant_count for c in clusters) / len(clusters))
            if clusters
            else 0
        )
        return ClustersResponse(
            clusters=clusters,
            edges=[make_edge(p, c) for p, c in edges],
            stats=ClusterStats(
                level=level,
                total_clusters=total_clusters,
                total_nodes_in_graph=total_nodes,
                avg_estimated_descendants=avg,
            ),
        )

    # --- shortest path ---

    async def shortest_path(
        self,
        from_id: str,
        to_id: str,
        direction: PathDirection = PathDirection.ANY,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> ShortestPathResponse:
        start = time.perf_counter()
        hop_path = await self.engine.shortest_path(from_id, to_id, direction, max_hops)
        if hop_path is None:
            return ShortestPathResponse(
                from_id=from_id,
                to_id=to_id,
                direction=direction,
                found=False,
                took_ms=int((time.perf_counter() - start) * 1000),
            )

        concepts = await self.store.get_concepts(hop_path.node_ids)
        items = await self._list_items([concepts[i] for i in hop_path.node_ids if i in concepts])
        return ShortestPathResponse(
            from_id=from_id,
            to_id=to_id,
            direction=direction,
            found=True,
            path=items,
            edges=[make_edge(p, c) for p, c in hop_path.edges],
            length=len(hop_path.edges),
            took_ms=int((time.perf_counter() - start) * 1000),
        )

from fastapi import APIRouter, Depends, Query, Request

from taxonomy_api.models.graph_models import (
    ClustersResponse,
    NeighborsDirection,
    NeighborsResponse,
    PathDirection,
    ShortestPathResponse,
    SubgraphDirection,
    SubgraphResponse,
)
from taxonomy_api.rate_limit import TRAVERSAL_LIMIT, limiter
from taxonomy_api.services.graph_service import MAX_NEIGHBOR_OFFSET, MAX_SUBGRAPH_DEPTH, MAX_SUBGRAPH_NODES
from taxonomy_api.services.taxonomy import Taxonomy, get_taxonomy
from taxonomy_api.services.traversal import DEFAULT_MAX_HOPS, MAX_HOPS

router = APIRouter(prefix="/api/graph", tags=["graph"])


@router.get("/subgraph/{concept_id}", response_model=SubgraphResponse)
@limiter.limit(TRAVERSAL_LIMIT)
async def get_subgraph(
    request: Request,
    concept_id: str,
    depth: int = Query(default=2, ge=0, le=MAX_SUBGRAPH_DEPTH),
    direction: SubgraphDirection = SubgraphDirection.BOTH,
    max_nodes: int = Query(default=100, ge=1, le=MAX_SUBGRAPH_NODES),
    include_details: bool = True,
    budget_seconds: float | None = None,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> SubgraphResponse:
    """Neighborhood of a concept for graph visualization."""
    return await taxonomy.graph.subgraph(
        concept_id,
        depth=depth,
        direction=direction,
        max_nodes=max_nodes,
        include_details=include_details,
        budget_seconds=budget_seconds,
    )


@router.get("/neighbors/{concept_id}", response_model=NeighborsResponse)
async def get_neighbors(
    concept_id: str,
    direction: NeighborsDirection = NeighborsDirection.BOTH,
    limit: int = Query(default=50, ge=1, le=200),
    parents_offset: int = Query(default=0, ge=0, le=MAX_NEIGHBOR_OFFSET),
    children_offset: int = Query(default=0, ge=0, le=MAX_NEIGHBOR_OFFSET),
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> NeighborsResponse:
    return await taxonomy.graph.neighbors(
        concept_id,
        direction=direction,
        limit=limit,
        parents_offset=parents_offset,
        children_offset=children_offset,
    )


@router.get("/shortest-path", response_model=ShortestPathResponse)
@limiter.limit(TRAVERSAL_LIMIT)
async def get_shortest_path(
    request: Request,
    from_id: str = Query(alias="from"),
    to_id: str = Query(alias="to"),
    direction: PathDirection = PathDirection.ANY,
    max_hops: int = Query(default=DEFAULT_MAX_HOPS, ge=1, le=MAX_HOPS),
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ShortestPathResponse:
    """Fewest-hop path between two concepts."""
    return await taxonomy.graph.shortest_path(from_id, to_id, direction, max_hops)


@router.get("/clusters", response_model=ClustersResponse)
async def get_clusters(
    level: int = Query(default=1, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ClustersResponse:
    """Representatives at one level; descendant counts are estimates."""
    return await taxonomy.graph.clusters(level, limit)

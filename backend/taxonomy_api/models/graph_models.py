"""Pydantic models for the graph exploration API."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from taxonomy_api.models.concept_models import ConceptListItem
from taxonomy_api.models.traversal_models import TruncationReason


class SubgraphDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    BOTH = "both"


class NeighborsDirection(str, Enum):
    PARENTS = "parents"
    CHILDREN = "children"
    BOTH = "both"


class PathDirection(str, Enum):
    ANY = "any"
    UPWARD = "upward"
    DOWNWARD = "downward"


class GraphNode(ConceptListItem):
    """A node in a subgraph response."""

    is_center: bool = False
    depth: int = 0  # BFS layer at which the node was first reached


class GraphEdge(BaseModel):
    """A parent -> child edge."""

    id: str  # "{source}->{target}"
    source: str  # parent id
    target: str  # child id


class SubgraphResponse(BaseModel):
    center_id: str
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    depth: int
    direction: SubgraphDirection
    total_nodes: int = 0
    total_edges: int = 0
    truncated: bool = False
    truncated_nodes: int = 0  # discovered but cut off by max_nodes
    truncation_reason: TruncationReason | None = None


class NeighborsPagination(BaseModel):
    limit: int
    parents_offset: int
    children_offset: int
    total_parents: int = 0
    total_children: int = 0
    has_more_parents: bool = False
    has_more_children: bool = False


class NeighborsResponse(BaseModel):
    node_id: str
    parents: list[ConceptListItem] = []
    children: list[ConceptListItem] = []
    parent_edges: list[GraphEdge] = []
    child_edges: list[GraphEdge] = []
    pagination: NeighborsPagination


class ShortestPathResponse(BaseModel):
    from_id: str
    to_id: str
    direction: PathDirection
    found: bool
    path: list[ConceptListItem] | None = None
    edges: list[GraphEdge] | None = None
    length: int = 0  # hops
    took_ms: int = 0


class ClusterInfo(BaseModel):
    node: ConceptListItem
    direct_child_count: int
    estimated_descendant_count: int
    is_leaf: bool


class ClusterStats(BaseModel):
    level: int
    total_clusters: int
    total_nodes_in_graph: int
    avg_estimated_descendants: int


class ClustersResponse(BaseModel):
    clusters: list[ClusterInfo]
    edges: list[GraphEdge]
    stats: ClusterStats
    descendant_count_is_estimate: bool = True
    estimation_method: str = (
        "direct_children * (1 + b + b^2), b = child count of the first child"
    )


def make_edge(source: str, target: str) -> GraphEdge:
    return GraphEdge(id=f"{source}->{target}", source=source, target=target)

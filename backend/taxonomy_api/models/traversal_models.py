"""Pydantic models for traversal results (closures, root paths, streaming)."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from taxonomy_api.models.concept_models import Concept


class TruncationReason(str, Enum):
    MAX_DEPTH = "max_depth"
    MAX_PATHS = "max_paths"
    MAX_NODES = "max_nodes"
    MAX_RESULTS = "max_results"
    TIMEOUT = "timeout"


class ConceptSet(BaseModel):
    """Deduplicated ancestor/descendant closure. Order carries no meaning."""

    node_id: str
    concepts: list[Concept]
    total: int
    truncated: bool = False
    truncation_reason: TruncationReason | None = None


class RootPath(BaseModel):
    nodes: list[Concept]  # root -> ... -> target
    partial: bool = False  # True when cut at max_depth before reaching a root


class PathsToRootResult(BaseModel):
    node_id: str
    paths: list[RootPath]
    total_paths: int
    nodes_visited: int = 0
    truncated: bool = False
    truncation_reason: TruncationReason | None = None


class PathSource(str, Enum):
    ENGINE = "engine"  # DFS over cached parent sets
    STORE = "store"  # one recursive query in the graph store


class PathEventType(str, Enum):
    PATH = "path"
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"


class PathProgress(BaseModel):
    found: int
    processed: int


class PathEvent(BaseModel):
    type: PathEventType
    path: list[Concept] | None = None
    partial: bool | None = None
    progress: PathProgress | None = None
    truncated: bool | None = None
    truncation_reason: TruncationReason | None = None
    error: str | None = None

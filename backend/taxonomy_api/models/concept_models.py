"""Pydantic models for concepts, variants and edges."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

CONCEPT_ID_PATTERN = r"^[A-Za-z0-9_.:\-]{1,64}$"


class Concept(BaseModel):
    """A taxonomy node as persisted in the graph store."""

    id: str
    label: str
    definition: str | None = None
    level: int = 0  # BFS depth hint, never authoritative
    created_at: datetime
    updated_at: datetime


class ConceptRef(BaseModel):
    id: str
    label: str


class ConceptCreate(BaseModel):
    id: str = Field(pattern=CONCEPT_ID_PATTERN)
    label: str = Field(min_length=1, max_length=255)
    definition: str | None = None
    level: int = Field(default=0, ge=0)
    variants: list[str] = []


class ConceptUpdate(BaseModel):
    label: str | None = Field(default=None, min_length=1, max_length=255)
    definition: str | None = None
    level: int | None = Field(default=None, ge=0)
    variants: list[str] | None = None  # None = leave variants untouched


class ConceptResponse(Concept):
    variants: list[str] = []


class ConceptDetail(ConceptResponse):
    parents: list[ConceptRef] = []
    child_count: int = 0


class ConceptListItem(BaseModel):
    """Concept as listed in pages, searches and graph views (no timestamps)."""

    id: str
    label: str
    definition: str | None = None
    level: int = 0
    variants: list[str] = []
    parent_ids: list[str] | None = None
    score: float | None = None


class ConceptStats(BaseModel):
    total_nodes: int
    total_edges: int
    max_depth: int


class EdgeCreate(BaseModel):
    parent_id: str = Field(pattern=CONCEPT_ID_PATTERN)
    child_id: str = Field(pattern=CONCEPT_ID_PATTERN)


class Edge(BaseModel):
    parent_id: str
    child_id: str
    created_at: datetime | None = None


class ReindexResponse(BaseModel):
    indexed: int
    failed: int = 0


def to_list_item(concept: Concept, variants: list[str] | None = None) -> ConceptListItem:
    return ConceptListItem(
        id=concept.id,
        label=concept.label,
        definition=concept.definition,
        level=concept.level,
        variants=variants or [],
    )

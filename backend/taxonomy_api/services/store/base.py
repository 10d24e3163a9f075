"""Abstract base class for graph stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from taxonomy_api.models.concept_models import Concept, ConceptCreate, Edge

# Keyset position (level, label, id) of the last row already returned
KeysetAfter = tuple[int, str, str]


class BaseGraphStore(ABC):
    """Interface over the persisted concept / variant / edge tables.

    Every method is a single logical query. Recursive methods are expected to
    run as one recursive query inside the store, not as client-side loops.
    """

    # --- concepts ---

    @abstractmethod
    async def get_concept(self, concept_id: str) -> Concept | None:
        """Point lookup by id."""

    @abstractmethod
    async def get_concepts(self, concept_ids: list[str]) -> dict[str, Concept]:
        """Batch lookup; missing ids are absent from the result."""

    @abstractmethod
    async def insert_concept(self, data: ConceptCreate) -> Concept:
        """Insert a concept and its variants. Raises ConflictError on duplicate id."""

    @abstractmethod
    async def update_concept(
        self,
        concept_id: str,
        fields: dict,
        variants: list[str] | None = None,
    ) -> Concept | None:
        """Update scalar fields (and replace variants when given)."""

    @abstractmethod
    async def delete_concept(self, concept_id: str) -> bool:
        """Delete a concept; variants and edges cascade."""

    @abstractmethod
    async def get_variants(self, concept_id: str) -> list[str]:
        ...

    @abstractmethod
    async def variants_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        ...

    @abstractmethod
    async def list_by_level(self, level: int, limit: int) -> list[Concept]:
        """Concepts at a hierarchy level ordered by (label, id)."""

    @abstractmethod
    async def list_concepts_page(
        self,
        level: int | None,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
    ) -> list[Concept]:
        """Keyset page over all concepts ordered by (level, label, id)."""

    @abstractmethod
    async def list_concepts_after_id(self, after_id: str | None, limit: int) -> list[Concept]:
        """Batches in id order, used by bulk reindexing."""

    # --- edges ---

    @abstractmethod
    async def insert_edge(self, parent_id: str, child_id: str) -> Edge:
        """Insert an edge. Raises ConflictError when it already exists."""

    @abstractmethod
    async def insert_edge_if_acyclic(self, parent_id: str, child_id: str) -> Edge:
        """Insert an edge unless `parent_id` is already below `child_id`.

        The check and the insert run as one write transaction. Raises
        CycleRejectedError or ConflictError.
        """

    @abstractmethod
    async def delete_edge(self, parent_id: str, child_id: str) -> bool:
        ...

    @abstractmethod
    async def get_edge(self, parent_id: str, child_id: str) -> Edge | None:
        ...

    @abstractmethod
    async def get_parent_ids(self, concept_id: str) -> list[str]:
        """Direct parent ids in edge insertion order."""

    @abstractmethod
    async def get_parents(self, concept_id: str) -> list[Concept]:
        ...

    @abstractmethod
    async def get_children(self, concept_id: str) -> list[Concept]:
        ...

    @abstractmethod
    async def parents_of_many(self, concept_ids: list[str]) -> list[tuple[str, Concept]]:
        """(child_id, parent) pairs for a whole frontier."""

    @abstractmethod
    async def children_of_many(self, concept_ids: list[str]) -> list[tuple[str, Concept]]:
        """(parent_id, child) pairs for a whole frontier."""

    @abstractmethod
    async def parent_ids_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        ...

    @abstractmethod
    async def child_ids_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        ...

    @abstractmethod
    async def edges_among(self, concept_ids: list[str]) -> list[tuple[str, str]]:
        """(parent_id, child_id) edges with both ends inside the given set."""

    @abstractmethod
    async def list_children(self, concept_id: str, limit: int, offset: int) -> list[Concept]:
        ...

    @abstractmethod
    async def list_parents(self, concept_id: str, limit: int, offset: int) -> list[Concept]:
        ...

    @abstractmethod
    async def list_children_page(
        self,
        concept_id: str,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
    ) -> list[Concept]:
        ...

    @abstractmethod
    async def list_parents_page(
        self,
        concept_id: str,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
    ) -> list[Concept]:
        ...

    # --- recursive queries ---

    @abstractmethod
    async def recursive_ancestors(self, concept_id: str, limit: int) -> list[Concept]:
        """Deduplicated ancestor closure, at most `limit` rows."""

    @abstractmethod
    async def recursive_descendants(self, concept_id: str, limit: int) -> list[Concept]:
        """Deduplicated descendant closure, at most `limit` rows."""

    @abstractmethod
    async def recursive_paths_to_root(
        self,
        concept_id: str,
        max_depth: int,
        limit: int,
    ) -> tuple[list[tuple[list[str], bool]], bool]:
        """Root paths as (ids root -> target, partial) tuples, plus a flag that
        is set when the walk hit its row budget before finishing.
        """

    @abstractmethod
    async def can_reach(self, from_id: str, to_id: str) -> bool:
        """True when `to_id` is a descendant of `from_id`."""

    # --- counts ---

    @abstractmethod
    async def count_concepts(self, level: int | None = None) -> int:
        ...

    @abstractmethod
    async def count_edges(self) -> int:
        ...

    @abstractmethod
    async def count_children(self, concept_id: str) -> int:
        ...

    @abstractmethod
    async def count_parents(self, concept_id: str) -> int:
        ...

    @abstractmethod
    async def max_level(self) -> int:
        ...

    async def close(self) -> None:
        """Release connections."""

"""Cycle detection for edge insertion."""

from __future__ import annotations

import logging

from taxonomy_api.exceptions import CycleRejectedError
from taxonomy_api.models.concept_models import Edge
from taxonomy_api.services.store.base import BaseGraphStore

logger = logging.getLogger(__name__)


class CycleGuard:
    """Rejects edges that would close a directed cycle.

    Always asks the store directly; a stale cached parent set must never
    let a cycle through.
    """

    def __init__(self, store: BaseGraphStore):
        self.store = store

    async def would_create_cycle(self, parent_id: str, child_id: str) -> bool:
        if parent_id == child_id:
            return True
        # parent -> child closes a cycle iff parent is already below child
        return await self.store.can_reach(child_id, parent_id)

    async def insert_edge(self, parent_id: str, child_id: str) -> Edge:
        """Insert parent -> child, checking reachability in the same store transaction."""
        try:
            if parent_id == child_id:
                raise CycleRejectedError(parent_id, child_id)
            return await self.store.insert_edge_if_acyclic(parent_id, child_id)
        except CycleRejectedError:
            logger.info("Rejected edge %s -> %s: would create a cycle", parent_id, child_id)
            raise

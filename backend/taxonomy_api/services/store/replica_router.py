"""Read replica selection strategy."""

from __future__ import annotations


class ReplicaRouter:
    """Round-robin replica choice.

    Holds no state: the caller passes its own request index, so the same
    router can be shared by any number of stores or tasks.
    """

    def pick(self, request_index: int, replica_count: int) -> int | None:
        """Return the replica slot for this request, or None to use the primary."""
        if replica_count <= 0:
            return None
        return request_index % replica_count

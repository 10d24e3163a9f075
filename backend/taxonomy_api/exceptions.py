"""Exception hierarchy for taxonomy operations.

Every error raised by the services inherits from TaxonomyError so the HTTP
layer can map them uniformly (see main.py).
"""

from __future__ import annotations


class TaxonomyError(Exception):
    """Base exception for all taxonomy errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(TaxonomyError):
    """A referenced concept or edge does not exist."""

    status_code = 404


class CycleRejectedError(TaxonomyError):
    """Adding the edge would create a directed cycle."""

    status_code = 400

    def __init__(self, parent_id: str, child_id: str):
        self.parent_id = parent_id
        self.child_id = child_id
        super().__init__(
            f"Creating edge from {parent_id} to {child_id} would create a cycle: "
            f"{parent_id} is already a descendant of {child_id}"
        )


class ConflictError(TaxonomyError):
    """A concept or edge with the same key already exists."""

    status_code = 409


class InvalidCursorError(TaxonomyError):
    """Pagination cursor is malformed, forged, or belongs to another sort."""

    status_code = 400


class BackendUnavailableError(TaxonomyError):
    """Store or search index unreachable after bounded retries."""

    status_code = 503

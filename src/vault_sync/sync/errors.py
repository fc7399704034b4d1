"""Exceptions raised by the sync engine.

Fatal errors (``InvalidEntityError``, ``StoreUnavailableError``) abort a run
before any operation is queued.  ``OperationError`` is raised inside a single
worker and is contained by the executor like any other per-path failure.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync engine errors."""


class InvalidEntityError(SyncError):
    """An entity cannot be reconciled (e.g. a file without modified time)."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(
            message
            or f"Your file {key} has no last modified time, "
            "don't know how to deal with it."
        )


class StoreUnavailableError(SyncError):
    """A backing store could not be reached during the pre-flight probe."""


class SyncInProgressError(SyncError):
    """A run was triggered while another run is still syncing."""


class OperationError(SyncError):
    """A single planned operation could not be carried out."""

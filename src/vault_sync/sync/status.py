"""Run state machine: ``IDLE -> SYNCING -> {SUCCESS, ERROR} -> IDLE``.

Only one run may be syncing at a time.  A trigger that arrives while a run
is in progress is rejected, never queued.
"""

from __future__ import annotations

import logging
import threading

from vault_sync.sync.errors import SyncInProgressError
from vault_sync.sync.models import SyncStatus

logger = logging.getLogger(__name__)


class RunStateMachine:
    """Owns the status of the sync runs for one vault."""

    def __init__(self) -> None:
        self._status = SyncStatus.IDLE
        self._lock = threading.Lock()

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def is_syncing(self) -> bool:
        return self._status == SyncStatus.SYNCING

    def begin(self) -> None:
        """Enter SYNCING, settling a finished run back to IDLE first.

        Raises:
            SyncInProgressError: If a run is already syncing.
        """
        with self._lock:
            if self._status == SyncStatus.SYNCING:
                raise SyncInProgressError("Sync is currently running.")
            if self._status != SyncStatus.IDLE:
                self._transition(SyncStatus.IDLE)
            self._transition(SyncStatus.SYNCING)

    def finish(self, succeeded: bool) -> None:
        """Leave SYNCING with the run's outcome."""
        with self._lock:
            if self._status != SyncStatus.SYNCING:
                raise RuntimeError(
                    f"Cannot finish a run from status {self._status.value}"
                )
            self._transition(
                SyncStatus.SUCCESS if succeeded else SyncStatus.ERROR
            )

    def reset(self) -> None:
        """Return a finished run to IDLE."""
        with self._lock:
            if self._status == SyncStatus.SYNCING:
                raise SyncInProgressError("Sync is currently running.")
            self._transition(SyncStatus.IDLE)

    def _transition(self, new_status: SyncStatus) -> None:
        logger.debug(
            "Sync status %s -> %s", self._status.value, new_status.value
        )
        self._status = new_status

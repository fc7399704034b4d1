"""Apply a sync plan against the local and remote filesystems.

Operations are split in two groups:

* **creations** (upload, download, merge, conflict copy) run shallow to
  deep, so parents exist before their children;
* **removals** (deletes, plus the trivial no-op entries) run deep to
  shallow, so children disappear before their parents.

Within a group every depth level is a barrier: all entries at depth *d*
finish before depth *d+1* (or *d-1*) is admitted.  Entries of one level
run concurrently in worker threads, bounded by a semaphore.

Error handling is per path: a failed operation is logged and reported, its
previous-sync record is left untouched, and no other operation is affected.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from itertools import groupby
from typing import TYPE_CHECKING

from vault_sync.content import (
    DEFAULT_MERGEABLE_EXTENSIONS,
    decode_content,
    encode_content,
    is_mergeable,
)
from vault_sync.core.async_utils import (
    create_semaphore,
    gather_limited,
    run_sync_limited,
)
from vault_sync.sync.errors import OperationError
from vault_sync.sync.merger import attempt_merge
from vault_sync.sync.models import (
    CREATION_ACTIONS,
    Entity,
    MixedEntity,
    SyncAction,
    SyncResult,
    key_depth,
)
from vault_sync.sync.resolver import generate_conflict_file_name
from vault_sync.sync.state import SyncDatabase

if TYPE_CHECKING:
    from vault_sync.filesystems.base import Filesystem

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


def partition_plan(
    mapping: dict[str, MixedEntity],
) -> tuple[list[MixedEntity], list[MixedEntity]]:
    """Split a plan into creations (shallow first) and removals (deep first)."""
    creations = sorted(
        (e for e in mapping.values() if e.action in CREATION_ACTIONS),
        key=lambda e: (key_depth(e.key), e.key),
    )
    removals = sorted(
        (e for e in mapping.values() if e.action not in CREATION_ACTIONS),
        key=lambda e: (-key_depth(e.key), e.key),
    )
    return creations, removals


def _levels(entries: Iterable[MixedEntity]) -> list[list[MixedEntity]]:
    """Group already-sorted entries into runs of equal depth."""
    return [
        list(group)
        for _, group in groupby(entries, key=lambda e: key_depth(e.key))
    ]


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyncExecutor:
    """Carry out planned actions and persist their results.

    Args:
        local: The local filesystem.
        remote: The remote filesystem.
        database: Store for previous-sync records.
        concurrency: Maximum number of operations in flight.
        create_remote_folders: Create folder objects remotely when
            uploading folders (object stores can do without them).
        record_merge_bases: Keep the text of mergeable files as merge
            baselines after every copy.
        mergeable_extensions: Extensions whose content can be merged.
        clock: Returns the current time in ms (used for merged files).
    """

    def __init__(
        self,
        local: Filesystem,
        remote: Filesystem,
        database: SyncDatabase,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        create_remote_folders: bool = True,
        record_merge_bases: bool = False,
        mergeable_extensions: tuple[str, ...] = DEFAULT_MERGEABLE_EXTENSIONS,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(
                f"Invalid concurrency {concurrency}: must be at least 1"
            )
        self.local = local
        self.remote = remote
        self.database = database
        self.concurrency = concurrency
        self.create_remote_folders = create_remote_folders
        self.record_merge_bases = record_merge_bases
        self.mergeable_extensions = tuple(mergeable_extensions)
        self._clock = clock or _now_ms

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def execute(
        self, mapping: dict[str, MixedEntity]
    ) -> list[SyncResult]:
        """Apply every planned entry and return one result per entry.

        Results are returned in dispatch order.
        """
        creations, removals = partition_plan(mapping)
        semaphore = create_semaphore(self.concurrency)
        logger.info(
            "Executing plan: %d creations, %d removals (concurrency=%d)",
            len(creations),
            len(removals),
            self.concurrency,
        )

        results: list[SyncResult] = []
        for level in _levels(creations) + _levels(removals):
            results.extend(
                await gather_limited(
                    [self._apply(entry, semaphore) for entry in level]
                )
            )
        return results

    async def _apply(self, entry: MixedEntity, semaphore) -> SyncResult:
        """Run one entry in a worker, containing any failure."""
        action = entry.action or SyncAction.NO_OP

        if action == SyncAction.NO_OP:
            return SyncResult(
                key=entry.key, action=action, success=True, reason=entry.reason
            )
        if action == SyncAction.CONFLICT:
            logger.warning(
                "Unresolved conflict for %s: %s", entry.key, entry.reason
            )
            return SyncResult(
                key=entry.key, action=action, success=True, reason=entry.reason
            )

        try:
            clean = await run_sync_limited(semaphore, self._perform, entry)
        except Exception as exc:
            logger.error(
                "Failed to sync %s (%s): %s", entry.key, action.value, exc
            )
            return SyncResult(
                key=entry.key,
                action=action,
                success=False,
                error=str(exc),
                reason=entry.reason,
            )

        return SyncResult(
            key=entry.key,
            action=action,
            success=True,
            reason=entry.reason,
            clean=clean,
        )

    # ------------------------------------------------------------------
    # Worker side (runs in a thread)
    # ------------------------------------------------------------------

    def _perform(self, entry: MixedEntity) -> bool | None:
        """Carry out one action and persist its result.

        Returns the merge cleanliness for merges, ``None`` otherwise.
        """
        clean: bool | None = None
        stored: Entity | None = None

        if entry.action == SyncAction.UPLOAD:
            stored = self._upload(entry)
        elif entry.action == SyncAction.DOWNLOAD:
            stored = self._download(entry)
        elif entry.action == SyncAction.MERGE:
            stored, clean = self._merge(entry)
        elif entry.action == SyncAction.CREATE_CONFLICT_FILE:
            stored = self._create_conflict_file(entry)
        elif entry.action == SyncAction.DELETE_LOCAL:
            self.local.remove(entry.key)
        elif entry.action == SyncAction.DELETE_REMOTE:
            self.remote.remove(entry.key)
        elif entry.action == SyncAction.DELETE_PREVIOUS_SYNC:
            self.database.remove_item(entry.key)
        else:
            raise OperationError(f"Unhandled action: {entry.action}")

        # Only persist when the operation produced a result.
        if stored is not None:
            self.database.set_item(entry.key, stored)
        logger.info("%s %s", entry.action.value, entry.key)
        return clean

    def _upload(self, entry: MixedEntity) -> Entity | None:
        local = self._require(entry, entry.local, "local")

        if entry.is_folder:
            if not self.create_remote_folders:
                return None
            result = self.remote.mkdir(
                entry.key, local.mtime, local.created_time_client
            )
            return result.model_copy(
                update={"modified_time_client": local.modified_time_client}
            )

        content = self.local.read(entry.key)
        result = self.remote.write(
            entry.key, content, local.mtime, local.created_time_client
        )
        self._record_base(entry.key, content)
        return result.model_copy(
            update={
                "created_time_client": local.created_time_client,
                "modified_time_client": local.mtime,
            }
        )

    def _download(self, entry: MixedEntity) -> Entity:
        remote = self._require(entry, entry.remote, "remote")

        if entry.is_folder:
            result = self.local.mkdir(
                entry.key, remote.mtime, remote.created_time_client
            )
            return result.model_copy(
                update={"modified_time_server": remote.modified_time_server}
            )

        content = self.remote.read(entry.key)
        result = self.local.write(
            entry.key, content, remote.mtime, remote.created_time_client
        )
        self._record_base(entry.key, content)
        return result.model_copy(
            update={
                "content_tag": remote.content_tag,
                "modified_time_server": remote.modified_time_server,
            }
        )

    def _merge(self, entry: MixedEntity) -> tuple[Entity, bool]:
        local = self._require(entry, entry.local, "local")
        self._require(entry, entry.remote, "remote")

        local_text, _ = decode_content(self.local.read(entry.key))
        remote_text, _ = decode_content(self.remote.read(entry.key))
        base_text = self.database.get_base_content(entry.key) or ""

        merged_text, clean = attempt_merge(base_text, local_text, remote_text)
        if not clean:
            logger.warning(
                "Merge of %s left conflict markers", entry.key
            )

        merged = encode_content(merged_text)
        mtime = self._clock()
        local_result = self.local.write(
            entry.key, merged, mtime, local.created_time_client
        )
        remote_result = self.remote.write(
            entry.key, merged, mtime, local.created_time_client
        )
        self.database.set_base_content(entry.key, merged_text)
        return (
            remote_result.model_copy(
                update={
                    "created_time_client": local_result.created_time_client,
                    "modified_time_client": local_result.mtime,
                }
            ),
            clean,
        )

    def _create_conflict_file(self, entry: MixedEntity) -> Entity:
        remote = self._require(entry, entry.remote, "remote")

        content = self.remote.read(entry.key)
        conflict_key = generate_conflict_file_name(
            entry.key, datetime.fromtimestamp(self._clock() / 1000)
        )
        self.local.write(
            conflict_key, content, remote.mtime, remote.created_time_client
        )
        logger.warning(
            "Conflict on %s: remote version saved as %s",
            entry.key,
            conflict_key,
        )
        return remote

    def _record_base(self, key: str, content: bytes) -> None:
        if self.record_merge_bases and is_mergeable(
            key, self.mergeable_extensions
        ):
            text, _ = decode_content(content)
            self.database.set_base_content(key, text)

    @staticmethod
    def _require(
        entry: MixedEntity, facet: Entity | None, side: str
    ) -> Entity:
        if facet is None:
            raise OperationError(
                f"Cannot {entry.action.value} {entry.key}: no {side} state"
            )
        return facet

"""Conflict resolution strategies for the sync planner.

A resolver is consulted when a path exists on both sides and both changed
since the last sync (or both appeared without any baseline).  It only picks
an action; the executor carries it out.

- ``LastWriteWinsResolver``: newer side wins, ties favour local.
- ``MergeResolver``: three-way merge for mergeable files, last-write-wins
  for everything else.
- ``ConflictFileResolver``: keep both versions via a conflict copy.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from vault_sync.content import DEFAULT_MERGEABLE_EXTENSIONS, is_mergeable
from vault_sync.sync.models import Entity, SyncAction

logger = logging.getLogger(__name__)

# Both values are milliseconds.
MTIME_TOLERANCE_MS = 2000
DEFAULT_REMOTE_MTIME_MS = 3000

CONFLICT_FILE_MARKER = ".sync-conflict-"


class PlanDecision(BaseModel):
    """The action chosen for one path, with its explanation."""

    action: SyncAction
    changed: bool
    reason: str

    model_config = {"frozen": True}


FOLDER_DECISION = PlanDecision(
    action=SyncAction.NO_OP,
    changed=False,
    reason="Nothing to do on folder conflict.",
)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, local: Entity, remote: Entity) -> PlanDecision:
        """Decide how to settle a path changed on both sides.

        Args:
            local: Current local state.
            remote: Current remote state.

        Returns:
            The decision for the path.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def last_write_wins(
    local: Entity, remote: Entity, suffix: str = ""
) -> PlanDecision:
    """Pick the newer side, giving local the benefit of the tolerance.

    Local wins iff ``local.mtime > remote.mtime - 2000``.  A remote without
    any modified time is treated as ``3000`` ms.
    """
    remote_mtime = remote.mtime
    if remote_mtime is None:
        remote_mtime = DEFAULT_REMOTE_MTIME_MS
    local_mtime = local.mtime or 0

    if local_mtime > remote_mtime - MTIME_TOLERANCE_MS:
        return PlanDecision(
            action=SyncAction.UPLOAD,
            changed=True,
            reason=f"Local file is newer{suffix}.",
        )
    return PlanDecision(
        action=SyncAction.DOWNLOAD,
        changed=True,
        reason=f"Remote file is newer{suffix}.",
    )


class LastWriteWinsResolver:
    """Resolve conflicts in favour of the most recently modified side."""

    def resolve(self, local: Entity, remote: Entity) -> PlanDecision:
        if local.is_folder or remote.is_folder:
            return FOLDER_DECISION
        return last_write_wins(local, remote)


class MergeResolver:
    """Schedule a three-way merge for mergeable files.

    Args:
        mergeable_extensions: File extensions (with leading dot) whose
            content can be merged line by line.
    """

    def __init__(
        self,
        mergeable_extensions: tuple[str, ...] = DEFAULT_MERGEABLE_EXTENSIONS,
    ) -> None:
        self.mergeable_extensions = tuple(mergeable_extensions)

    def resolve(self, local: Entity, remote: Entity) -> PlanDecision:
        if local.is_folder or remote.is_folder:
            return FOLDER_DECISION
        if is_mergeable(local.key, self.mergeable_extensions):
            return PlanDecision(
                action=SyncAction.MERGE,
                changed=True,
                reason="Conflict detected, attempting merge.",
            )
        return last_write_wins(local, remote, suffix=" (merge fallback)")


class ConflictFileResolver:
    """Never overwrite either side; keep the remote version as a copy."""

    def resolve(self, local: Entity, remote: Entity) -> PlanDecision:
        if local.is_folder or remote.is_folder:
            return FOLDER_DECISION
        return PlanDecision(
            action=SyncAction.CREATE_CONFLICT_FILE,
            changed=True,
            reason="Conflict detected, creating conflict file.",
        )


def generate_conflict_file_name(
    original_key: str, now: datetime | None = None
) -> str:
    """Build the key of a conflict copy.

    Format: ``<name>.sync-conflict-YYYYMMDD-HHMMSS<.ext>``.  The extension
    is taken from the last path component only.

    Args:
        original_key: Key of the conflicting file.
        now: Timestamp to embed (defaults to the current local time).
    """
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    folder, _, basename = original_key.rpartition("/")
    prefix = f"{folder}/" if folder else ""

    dot = basename.rfind(".")
    if dot <= 0:
        return f"{prefix}{basename}{CONFLICT_FILE_MARKER}{stamp}"
    name, ext = basename[:dot], basename[dot:]
    return f"{prefix}{name}{CONFLICT_FILE_MARKER}{stamp}{ext}"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "last_write_wins": LastWriteWinsResolver,
    "merge": MergeResolver,
    "create_conflict_file": ConflictFileResolver,
}


def create_resolver(
    strategy: str,
    mergeable_extensions: tuple[str, ...] | None = None,
) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"last_write_wins"``, ``"merge"``,
            ``"create_conflict_file"``.
        mergeable_extensions: Extensions handled by the merge strategy.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    if cls is MergeResolver and mergeable_extensions is not None:
        return MergeResolver(tuple(mergeable_extensions))
    return cls()  # type: ignore[return-value]

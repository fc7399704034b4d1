"""Sync planning: assign exactly one action to every reconciled path.

The decision depends only on which facets are present and on change
detection against the previous-sync record:

======  ======  ====  ===================================================
local   remote  prev  action
======  ======  ====  ===================================================
no      yes     no    download (new remotely)
yes     no      no    upload (new locally)
yes     yes     no    conflict resolution (both new, no baseline)
no      no      yes   delete_previous_sync (gone on both sides)
yes     no      yes   upload if local changed, else delete_local
no      yes     yes   download if remote changed, else delete_remote
yes     yes     yes   no_op / upload / download / conflict resolution
======  ======  ====  ===================================================

Paths are visited deepest first so that a folder is decided after all of
its descendants; a folder that still holds files being copied to the other
side is kept rather than deleted, and one above a path left in conflict
is left alone.
"""

from __future__ import annotations

import logging

from vault_sync.sync.models import (
    Entity,
    MixedEntity,
    SyncAction,
    ancestor_keys,
)
from vault_sync.sync.resolver import (
    MTIME_TOLERANCE_MS,
    ConflictResolver,
    LastWriteWinsResolver,
    PlanDecision,
)

logger = logging.getLogger(__name__)

EDIT_DELETE_POLICIES = ("resurrect", "propagate_delete", "conflict")


def has_changed(current: Entity, previous: Entity) -> bool:
    """Detect whether *current* differs from *previous*.

    Size is compared first, then content tags when both sides have one,
    then modified times with a 2000 ms tolerance.
    """
    if current.size != previous.size:
        return True

    if current.content_tag is not None and previous.content_tag is not None:
        return current.content_tag != previous.content_tag

    current_mtime = current.mtime or 0
    previous_mtime = previous.mtime or 0
    return abs(current_mtime - previous_mtime) > MTIME_TOLERANCE_MS


def _held_folder() -> PlanDecision:
    return PlanDecision(
        action=SyncAction.NO_OP,
        changed=False,
        reason="Folder holds an unresolved conflict.",
    )


def sort_deepest_first(keys) -> list[str]:
    """Order keys longest first, ties broken alphabetically."""
    return sorted(keys, key=lambda k: (-len(k), k))


class SyncPlanner:
    """Compute the sync plan for a reconciled mapping.

    Args:
        resolver: Strategy used for paths changed on both sides.
        edit_delete_policy: What to do when one side edited a file the
            other side deleted: ``"resurrect"`` copies it back,
            ``"propagate_delete"`` honours the deletion, ``"conflict"``
            leaves the path untouched for manual review.
    """

    def __init__(
        self,
        resolver: ConflictResolver | None = None,
        edit_delete_policy: str = "resurrect",
    ) -> None:
        if edit_delete_policy not in EDIT_DELETE_POLICIES:
            raise ValueError(
                f"Unknown edit/delete policy: '{edit_delete_policy}'. "
                f"Valid policies: {list(EDIT_DELETE_POLICIES)}"
            )
        self.resolver = resolver or LastWriteWinsResolver()
        self.edit_delete_policy = edit_delete_policy

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def plan(
        self, mapping: dict[str, MixedEntity]
    ) -> dict[str, MixedEntity]:
        """Set ``action``, ``changed`` and ``reason`` on every entry.

        Mutates and returns *mapping*.  Planning an already planned mapping
        again yields the same plan.
        """
        # Folders that must survive because a descendant is copied there.
        keep_remote: set[str] = set()
        keep_local: set[str] = set()
        # Folders above an unresolved conflict stay as they are.
        held: set[str] = set()

        for key in sort_deepest_first(mapping):
            entry = mapping[key]
            decision = self.decide(entry, keep_local, keep_remote, held)
            entry.action = decision.action
            entry.changed = decision.changed
            entry.reason = decision.reason

            if decision.action == SyncAction.UPLOAD:
                keep_remote.update(ancestor_keys(key))
            elif decision.action == SyncAction.DOWNLOAD:
                keep_local.update(ancestor_keys(key))
            elif decision.action == SyncAction.CONFLICT:
                held.update(ancestor_keys(key))

            logger.debug(
                "Planned %s for %s: %s",
                decision.action.value,
                key,
                decision.reason,
            )

        return mapping

    # ------------------------------------------------------------------
    # Decision table
    # ------------------------------------------------------------------

    def decide(
        self,
        entry: MixedEntity,
        keep_local: frozenset[str] | set[str] = frozenset(),
        keep_remote: frozenset[str] | set[str] = frozenset(),
        held: frozenset[str] | set[str] = frozenset(),
    ) -> PlanDecision:
        """Decide the action for one path.

        Args:
            entry: The reconciled path.
            keep_local: Folder keys that a planned download needs locally.
            keep_remote: Folder keys that a planned upload needs remotely.
            held: Folder keys above a path left in conflict.
        """
        local, remote, previous = (
            entry.local,
            entry.remote,
            entry.previous_sync,
        )

        if local is None and remote is not None and previous is None:
            return PlanDecision(
                action=SyncAction.DOWNLOAD,
                changed=True,
                reason="File does not exist locally.",
            )

        if local is not None and remote is None and previous is None:
            return PlanDecision(
                action=SyncAction.UPLOAD,
                changed=True,
                reason="File does not exist remotely.",
            )

        if local is not None and remote is not None and previous is None:
            return self.resolver.resolve(local, remote)

        if local is None and remote is None and previous is not None:
            return PlanDecision(
                action=SyncAction.DELETE_PREVIOUS_SYNC,
                changed=False,
                reason="Does not exist locally or remotely.",
            )

        if local is not None and remote is None and previous is not None:
            return self._deleted_remotely(
                entry.key, local, previous, keep_remote, held
            )

        if local is None and remote is not None and previous is not None:
            return self._deleted_locally(
                entry.key, remote, previous, keep_local, held
            )

        if local is not None and remote is not None and previous is not None:
            return self._all_three(local, remote, previous)

        # A mapping entry always has at least one facet.
        return PlanDecision(
            action=SyncAction.NO_OP,
            changed=False,
            reason="No facets present.",
        )

    def _deleted_remotely(
        self,
        key: str,
        local: Entity,
        previous: Entity,
        keep_remote: frozenset[str] | set[str],
        held: frozenset[str] | set[str],
    ) -> PlanDecision:
        if local.is_folder:
            if key in keep_remote:
                return PlanDecision(
                    action=SyncAction.UPLOAD,
                    changed=True,
                    reason="Folder deleted remotely but holds uploads.",
                )
            if key in held:
                return _held_folder()
            return PlanDecision(
                action=SyncAction.DELETE_LOCAL,
                changed=True,
                reason="Folder deleted remotely.",
            )

        if not has_changed(local, previous):
            return PlanDecision(
                action=SyncAction.DELETE_LOCAL,
                changed=True,
                reason="File deleted remotely.",
            )

        if self.edit_delete_policy == "propagate_delete":
            return PlanDecision(
                action=SyncAction.DELETE_LOCAL,
                changed=True,
                reason="Local modified but remote deleted; deletion wins.",
            )
        if self.edit_delete_policy == "conflict":
            return PlanDecision(
                action=SyncAction.CONFLICT,
                changed=True,
                reason="Local modified but remote deleted; needs review.",
            )
        return PlanDecision(
            action=SyncAction.UPLOAD,
            changed=True,
            reason="Local modified but remote deleted.",
        )

    def _deleted_locally(
        self,
        key: str,
        remote: Entity,
        previous: Entity,
        keep_local: frozenset[str] | set[str],
        held: frozenset[str] | set[str],
    ) -> PlanDecision:
        if remote.is_folder:
            if key in keep_local:
                return PlanDecision(
                    action=SyncAction.DOWNLOAD,
                    changed=True,
                    reason="Folder deleted locally but holds downloads.",
                )
            if key in held:
                return _held_folder()
            return PlanDecision(
                action=SyncAction.DELETE_REMOTE,
                changed=True,
                reason="Folder deleted locally.",
            )

        if not has_changed(remote, previous):
            return PlanDecision(
                action=SyncAction.DELETE_REMOTE,
                changed=True,
                reason="File deleted locally.",
            )

        if self.edit_delete_policy == "propagate_delete":
            return PlanDecision(
                action=SyncAction.DELETE_REMOTE,
                changed=True,
                reason="Remote modified but local deleted; deletion wins.",
            )
        if self.edit_delete_policy == "conflict":
            return PlanDecision(
                action=SyncAction.CONFLICT,
                changed=True,
                reason="Remote modified but local deleted; needs review.",
            )
        return PlanDecision(
            action=SyncAction.DOWNLOAD,
            changed=True,
            reason="Remote modified but local deleted.",
        )

    def _all_three(
        self, local: Entity, remote: Entity, previous: Entity
    ) -> PlanDecision:
        if local.is_folder or remote.is_folder:
            return PlanDecision(
                action=SyncAction.NO_OP,
                changed=False,
                reason="Folder exists on both sides.",
            )

        local_changed = has_changed(local, previous)
        remote_changed = has_changed(remote, previous)

        if not local_changed and not remote_changed:
            return PlanDecision(
                action=SyncAction.NO_OP,
                changed=False,
                reason="File not modified.",
            )
        if local_changed and not remote_changed:
            return PlanDecision(
                action=SyncAction.UPLOAD,
                changed=True,
                reason="All three exist, local changed.",
            )
        if not local_changed and remote_changed:
            return PlanDecision(
                action=SyncAction.DOWNLOAD,
                changed=True,
                reason="All three exist, remote changed.",
            )
        return self.resolver.resolve(local, remote)

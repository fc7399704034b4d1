"""Pydantic models for the sync engine.

Defines the core data contracts used across all sync modules:

- ``Entity``: State of one path on one side (local, remote, previous sync).
- ``MixedEntity``: The up-to-three facets of one path plus its planned action.
- ``SyncAction``: Enum of possible sync operations.
- ``SyncStatus``: Run state machine states.
- ``SyncResult``: Outcome of applying one planned action.
- ``SyncReport``: Aggregate results for a full sync run.

``Entity`` and the result models are frozen.  ``MixedEntity`` is mutable
because the planner fills in ``action``/``changed``/``reason`` in place.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, field_validator, model_validator

FOLDER_SEPARATOR = "/"


def to_millis(value: object) -> int | None:
    """Normalise a timestamp to integer milliseconds since the epoch.

    ``datetime`` values are converted, floats are truncated.  ``None`` and
    non-positive values mean "unknown" and become ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.timestamp() * 1000
    millis = int(value)  # type: ignore[call-overload]
    if millis <= 0:
        return None
    return millis


class SyncAction(str, Enum):
    """Possible actions for one path."""

    NO_OP = "no_op"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    DELETE_LOCAL = "delete_local"
    DELETE_REMOTE = "delete_remote"
    DELETE_PREVIOUS_SYNC = "delete_previous_sync"
    CONFLICT = "conflict"
    MERGE = "merge"
    CREATE_CONFLICT_FILE = "create_conflict_file"


CREATION_ACTIONS = frozenset(
    {
        SyncAction.UPLOAD,
        SyncAction.DOWNLOAD,
        SyncAction.MERGE,
        SyncAction.CREATE_CONFLICT_FILE,
    }
)


class SyncStatus(str, Enum):
    """States of the run state machine."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class Entity(BaseModel):
    """State of a single path on one side.

    Attributes:
        key: Path relative to the vault root.  Folder keys end with ``/``.
        size: Size in bytes (0 for folders).
        created_time_client: Client creation time in ms.
        modified_time_client: Client modification time in ms.
        modified_time_server: Server modification time in ms.
        content_tag: Opaque content identifier (e.g. an S3 ETag).
        is_synthesized_folder: True if the folder was inferred from
            object keys rather than stored as an object.
    """

    key: str
    size: int = 0
    created_time_client: int | None = None
    modified_time_client: int | None = None
    modified_time_server: int | None = None
    content_tag: str | None = None
    is_synthesized_folder: bool = False

    model_config = {"frozen": True}

    @field_validator(
        "created_time_client",
        "modified_time_client",
        "modified_time_server",
        mode="before",
    )
    @classmethod
    def _normalise_time(cls, value: object) -> int | None:
        return to_millis(value)

    @model_validator(mode="after")
    def _require_mtime(self) -> Entity:
        if not self.is_folder and self.mtime is None:
            raise ValueError(
                f"Entity {self.key!r} has no modified time; "
                "a file needs a client or server modified time"
            )
        return self

    @property
    def is_folder(self) -> bool:
        """True if the key denotes a folder."""
        return self.key.endswith(FOLDER_SEPARATOR)

    @property
    def mtime(self) -> int | None:
        """Client modified time, falling back to the server time."""
        if self.modified_time_client is not None:
            return self.modified_time_client
        return self.modified_time_server

    @property
    def depth(self) -> int:
        """Number of ancestors of this key."""
        return key_depth(self.key)


def key_depth(key: str) -> int:
    """Return how many folders deep *key* sits (``"a/b/c.md"`` is 2)."""
    return key.rstrip(FOLDER_SEPARATOR).count(FOLDER_SEPARATOR)


def ancestor_keys(key: str) -> list[str]:
    """List the folder keys above *key*, shallowest first.

    ``"path/to/file.md"`` gives ``["path/", "path/to/"]``; a folder key
    does not include itself.
    """
    parts = key.rstrip(FOLDER_SEPARATOR).split(FOLDER_SEPARATOR)
    return [
        FOLDER_SEPARATOR.join(parts[: i + 1]) + FOLDER_SEPARATOR
        for i in range(len(parts) - 1)
        if parts[i]
    ]


class MixedEntity(BaseModel):
    """All known facets of one path, plus the action planned for it.

    Attributes:
        key: Path relative to the vault root.
        local: Current local state, if the path exists locally.
        remote: Current remote state, if the path exists remotely.
        previous_sync: State recorded after the last successful sync.
        action: Planned action (set by the planner).
        changed: Whether the planner considers the path changed.
        reason: Human-readable explanation of the decision.
    """

    key: str
    local: Entity | None = None
    remote: Entity | None = None
    previous_sync: Entity | None = None
    action: SyncAction | None = None
    changed: bool | None = None
    reason: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.key.endswith(FOLDER_SEPARATOR)


class SyncResult(BaseModel):
    """Result of applying the planned action for one path.

    Attributes:
        key: Path relative to the vault root.
        action: Action that was (or would be) performed.
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
        reason: Planner's reason for the action.
        clean: For merges, whether every hunk merged without conflict.
    """

    key: str
    action: SyncAction
    success: bool
    error: str | None = None
    reason: str | None = None
    clean: bool | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        profile_name: Name of the vault/profile that was synced.
        dry_run: Whether this was a dry run (no changes applied).
        status: Final run status.
        results: Individual results, one per planned path.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    profile_name: str
    dry_run: bool = False
    status: SyncStatus = SyncStatus.SUCCESS
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action]

    @property
    def uploaded(self) -> list[SyncResult]:
        """Results where action is UPLOAD."""
        return self._with_action(SyncAction.UPLOAD)

    @property
    def downloaded(self) -> list[SyncResult]:
        """Results where action is DOWNLOAD."""
        return self._with_action(SyncAction.DOWNLOAD)

    @property
    def deleted_local(self) -> list[SyncResult]:
        """Results where action is DELETE_LOCAL."""
        return self._with_action(SyncAction.DELETE_LOCAL)

    @property
    def deleted_remote(self) -> list[SyncResult]:
        """Results where action is DELETE_REMOTE."""
        return self._with_action(SyncAction.DELETE_REMOTE)

    @property
    def merged(self) -> list[SyncResult]:
        """Results where action is MERGE."""
        return self._with_action(SyncAction.MERGE)

    @property
    def conflicts(self) -> list[SyncResult]:
        """Unresolved conflicts and conflict copies."""
        return [
            r
            for r in self.results
            if r.action
            in (SyncAction.CONFLICT, SyncAction.CREATE_CONFLICT_FILE)
        ]

    @property
    def unchanged(self) -> list[SyncResult]:
        """Results where action is NO_OP or DELETE_PREVIOUS_SYNC."""
        return [
            r
            for r in self.results
            if r.action
            in (SyncAction.NO_OP, SyncAction.DELETE_PREVIOUS_SYNC)
        ]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """Format a human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync report for '{self.profile_name}'"
            + (" (dry run)" if self.dry_run else ""),
            f"  Status:         {self.status.value}",
            f"  Uploaded:       {len(self.uploaded)}",
            f"  Downloaded:     {len(self.downloaded)}",
            f"  Deleted local:  {len(self.deleted_local)}",
            f"  Deleted remote: {len(self.deleted_remote)}",
            f"  Merged:         {len(self.merged)}",
            f"  Conflicts:      {len(self.conflicts)}",
            f"  Unchanged:      {len(self.unchanged)}",
            f"  Errors:         {len(self.errors)}",
            f"  Total:          {len(self.results)}",
        ]
        return "\n".join(lines)

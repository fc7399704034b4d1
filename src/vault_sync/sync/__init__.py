"""Three-way sync engine.

Public API for reconciling a local file tree, a remote store and the
record of the last synchronised state.

Architecture
------------
Every path is seen through up to three *facets*: its current local state,
its current remote state and its state after the last successful sync.
Each side is compared against the previous-sync facet, never directly
against the other side, so a change is attributed to the side that made
it.  Only paths changed on both sides reach the conflict resolver.

Modules:

- ``engine``     -- ``SyncEngine``: orchestrates a full sync run.
- ``reconciler`` -- ``reconcile``: merges three entity lists by path.
- ``planner``    -- ``SyncPlanner``: the per-path decision table.
- ``resolver``   -- Conflict strategies (last-write-wins, merge,
  conflict copy).
- ``merger``     -- Three-way merge via ``merge3`` library.
- ``executor``   -- ``SyncExecutor``: depth-ordered concurrent execution.
- ``state``      -- ``JsonSyncDatabase``: previous-sync records.
- ``status``     -- ``RunStateMachine``: run status transitions.
- ``models``     -- ``Entity``, ``MixedEntity``, ``SyncAction``,
  ``SyncResult``, ``SyncReport``: core data contracts.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from vault_sync.config import load_config
    from vault_sync.sync import (
        SyncEngine,
        format_dry_run_preview,
        format_sync_report,
    )

    engine = SyncEngine.from_config(local_fs, remote_fs, load_config())

    # Dry-run first to preview changes
    preview = engine.run(dry_run=True)
    print(format_dry_run_preview(preview))

    report = engine.run()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .errors import (
    InvalidEntityError,
    OperationError,
    StoreUnavailableError,
    SyncError,
    SyncInProgressError,
)
from .executor import SyncExecutor
from .models import (
    Entity,
    MixedEntity,
    SyncAction,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from .planner import SyncPlanner
from .reconciler import reconcile
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .resolver import create_resolver
from .state import JsonSyncDatabase, SyncDatabase
from .status import RunStateMachine

__all__ = [
    "Entity",
    "InvalidEntityError",
    "JsonSyncDatabase",
    "MixedEntity",
    "OperationError",
    "RunStateMachine",
    "StoreUnavailableError",
    "SyncAction",
    "SyncDatabase",
    "SyncEngine",
    "SyncError",
    "SyncExecutor",
    "SyncInProgressError",
    "SyncPlanner",
    "SyncReport",
    "SyncResult",
    "SyncStatus",
    "create_resolver",
    "format_dry_run_preview",
    "format_sync_report",
    "reconcile",
    "report_to_json",
]

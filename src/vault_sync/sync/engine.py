"""Core sync engine that orchestrates one full sync run.

The ``SyncEngine`` ties together filters, reconciler, planner, resolver and
executor.  A run:

1. Enters SYNCING (a concurrent trigger is rejected).
2. Probes the remote store with a partial walk.
3. Walks both filesystems and loads the previous-sync records.
4. Applies the selective-sync filter chain to all three lists.
5. Reconciles them into one path-keyed mapping.
6. Plans exactly one action per path.
7. Executes the plan (skipped for dry runs).
8. Settles SUCCESS or ERROR and returns a ``SyncReport``.

Fatal errors in steps 2-6 abort the run before any operation is queued;
per-path failures in step 7 are contained by the executor.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from vault_sync.config_schema import SyncSettings, UnifiedConfig
from vault_sync.core.async_utils import run_sync
from vault_sync.filters import FileFilter, build_filter_chain
from vault_sync.sync.errors import (
    InvalidEntityError,
    StoreUnavailableError,
    SyncError,
)
from vault_sync.sync.executor import SyncExecutor, partition_plan
from vault_sync.sync.models import (
    Entity,
    MixedEntity,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from vault_sync.sync.planner import SyncPlanner
from vault_sync.sync.reconciler import reconcile
from vault_sync.sync.resolver import create_resolver
from vault_sync.sync.state import JsonSyncDatabase, SyncDatabase
from vault_sync.sync.status import RunStateMachine

if TYPE_CHECKING:
    from vault_sync.filesystems.base import Filesystem

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _invalid_key(exc: ValidationError) -> str:
    for error in exc.errors():
        data = error.get("input")
        if isinstance(data, dict) and "key" in data:
            return str(data["key"])
    return "<unknown>"


class SyncEngine:
    """Orchestrate sync runs between one local and one remote filesystem.

    Args:
        local: The local filesystem.
        remote: The remote filesystem.
        database: Store for previous-sync records.
        settings: Engine settings (strategy, policies, concurrency).
        filters: Selective-sync filter applied to every entity list.
        clock: Returns the current time in ms; passed to the executor.
    """

    def __init__(
        self,
        local: Filesystem,
        remote: Filesystem,
        database: SyncDatabase,
        settings: SyncSettings | None = None,
        filters: FileFilter | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.database = database
        self.settings = settings or SyncSettings()
        self.filters = filters
        self.clock = clock
        self.state = RunStateMachine()

    @classmethod
    def from_config(
        cls,
        local: Filesystem,
        remote: Filesystem,
        config: UnifiedConfig | None = None,
    ) -> SyncEngine:
        """Build an engine with the JSON database and standard filters."""
        config = config or UnifiedConfig()
        database = JsonSyncDatabase(
            Path(config.sync.state_dir), config.sync.profile_name
        )
        return cls(
            local,
            remote,
            database,
            settings=config.sync,
            filters=build_filter_chain(config),
        )

    @property
    def status(self) -> SyncStatus:
        return self.state.status

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, dry_run: bool = False) -> SyncReport:
        """Blocking wrapper around :meth:`arun`."""
        return asyncio.run(self.arun(dry_run=dry_run))

    async def arun(self, dry_run: bool = False) -> SyncReport:
        """Execute a full sync run.

        Args:
            dry_run: If ``True``, plan but apply and persist nothing.

        Returns:
            A ``SyncReport`` with one result per planned path.

        Raises:
            SyncInProgressError: If a run is already syncing.
            StoreUnavailableError: If a store cannot be walked.
            InvalidEntityError: If an entity cannot be reconciled.
        """
        self.state.begin()
        started_at = _now_iso()
        logger.info(
            "Sync started for '%s'%s",
            self.settings.profile_name,
            " (dry run)" if dry_run else "",
        )

        try:
            mapping = await self.plan()
            if dry_run:
                results = self._preview(mapping)
            else:
                results = await self._executor().execute(mapping)
        except Exception as exc:
            self.state.finish(False)
            logger.error("Sync aborted: %s", exc)
            raise

        failures = [r for r in results if not r.success]
        succeeded = not (failures and self.settings.fail_on_operation_error)
        self.state.finish(succeeded)

        report = SyncReport(
            profile_name=self.settings.profile_name,
            dry_run=dry_run,
            status=self.state.status,
            results=results,
            started_at=started_at,
            completed_at=_now_iso(),
        )
        logger.info(
            "Sync finished for '%s': %s (%d paths, %d failed)",
            self.settings.profile_name,
            report.status.value,
            len(results),
            len(failures),
        )
        return report

    async def plan(self) -> dict[str, MixedEntity]:
        """Gather, filter, reconcile and plan, without executing anything."""
        await self._probe_remote()
        local_entities = await self._walk(self.local, "local")
        remote_entities = await self._walk(self.remote, "remote")
        previous_entities = self.database.get_all()

        mapping = reconcile(
            self._filter(local_entities),
            self._filter(remote_entities),
            self._filter(previous_entities),
        )
        resolver = create_resolver(
            self.settings.conflict_strategy,
            tuple(self.settings.mergeable_extensions),
        )
        planner = SyncPlanner(
            resolver, edit_delete_policy=self.settings.edit_delete_policy
        )
        return planner.plan(mapping)

    def test_connection(self) -> bool:
        """Run the connection test against the remote filesystem."""
        return self.remote.test_connection()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _probe_remote(self) -> None:
        try:
            await run_sync(self.remote.walk_partial)
        except Exception as exc:
            raise StoreUnavailableError(
                f"Remote store is unavailable: {exc}"
            ) from exc

    async def _walk(self, fs: Filesystem, side: str) -> list[Entity]:
        try:
            entities = await run_sync(fs.walk)
        except SyncError:
            raise
        except ValidationError as exc:
            raise InvalidEntityError(
                _invalid_key(exc), f"Invalid {side} entity: {exc}"
            ) from exc
        except Exception as exc:
            raise StoreUnavailableError(
                f"Failed to list {side} files: {exc}"
            ) from exc
        logger.debug("Walked %d %s entities", len(entities), side)
        return entities

    def _filter(self, entities: list[Entity]) -> list[Entity]:
        if self.filters is None:
            return entities
        return self.filters.apply(entities)

    def _executor(self) -> SyncExecutor:
        return SyncExecutor(
            self.local,
            self.remote,
            self.database,
            concurrency=self.settings.concurrency,
            create_remote_folders=self.settings.create_remote_folders,
            record_merge_bases=self.settings.conflict_strategy == "merge",
            mergeable_extensions=tuple(self.settings.mergeable_extensions),
            clock=self.clock,
        )

    @staticmethod
    def _preview(mapping: dict[str, MixedEntity]) -> list[SyncResult]:
        creations, removals = partition_plan(mapping)
        return [
            SyncResult(
                key=entry.key,
                action=entry.action,
                success=True,
                reason=entry.reason,
            )
            for entry in creations + removals
        ]

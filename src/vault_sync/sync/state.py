"""Previous-sync persistence layer.

Stores one ``Entity`` per path, recorded after the path was last synced
successfully, plus the merge baseline text of mergeable files.  The
``SyncDatabase`` protocol is what the engine and executor depend on;
``JsonSyncDatabase`` is the file-backed implementation.

Key design choices:

* **Atomic writes** -- every mutation rewrites the state file through a
  temp file and ``os.replace()`` so readers never see partial data.
* **Per-key updates** -- workers persist each completed operation
  immediately, so a crash mid-run loses at most the operations in flight.
* **Thread safety** -- executor workers run in threads; a lock serialises
  mutations of the in-memory state and the file write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from vault_sync.sync.errors import InvalidEntityError
from vault_sync.sync.models import Entity

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class SyncDatabase(Protocol):
    """Key-value store for previous-sync records, keyed by path."""

    def get_all(self) -> list[Entity]: ...  # pragma: no cover

    def set_item(self, key: str, entity: Entity) -> None: ...  # pragma: no cover

    def remove_item(self, key: str) -> None: ...  # pragma: no cover

    def clear(self) -> None: ...  # pragma: no cover

    def get_base_content(self, key: str) -> str | None: ...  # pragma: no cover

    def set_base_content(self, key: str, content: str) -> None: ...  # pragma: no cover


class JsonSyncDatabase:
    """Load, save, and query previous-sync records for one profile.

    The state file lives at ``<state_dir>/sync_<profile_name>.json`` and
    has the shape ``{version, profile, last_sync, entries, bases}``.

    Args:
        state_dir: Directory where state files are stored (typically
            ``.vault_sync/``).
        profile_name: Name of the vault/profile (used in the filename).
    """

    def __init__(self, state_dir: Path, profile_name: str) -> None:
        self._state_dir = Path(state_dir)
        self.profile_name = profile_name
        self._lock = threading.Lock()
        self._state = self._load()

    # ------------------------------------------------------------------
    # SyncDatabase API
    # ------------------------------------------------------------------

    def get_all(self) -> list[Entity]:
        """Return every stored record.

        Raises:
            InvalidEntityError: If a stored record fails validation.
        """
        with self._lock:
            raw_entries = dict(self._state["entries"])

        entities: list[Entity] = []
        for key, raw in raw_entries.items():
            try:
                entities.append(Entity.model_validate(raw))
            except ValidationError as exc:
                raise InvalidEntityError(
                    key, f"Invalid previous-sync record for {key}: {exc}"
                ) from exc
        return entities

    def get_item(self, key: str) -> Entity | None:
        """Return the record for *key*, or ``None`` if absent."""
        with self._lock:
            raw = self._state["entries"].get(key)
        return None if raw is None else Entity.model_validate(raw)

    def set_item(self, key: str, entity: Entity) -> None:
        """Upsert the record for *key* and persist immediately."""
        with self._lock:
            self._state["entries"][key] = entity.model_dump(
                mode="json", exclude_none=True
            )
            self._save()

    def remove_item(self, key: str) -> None:
        """Remove the record (and baseline) for *key*.  No-op if absent."""
        with self._lock:
            removed = self._state["entries"].pop(key, None)
            removed_base = self._state["bases"].pop(key, None)
            if removed is not None or removed_base is not None:
                self._save()

    def clear(self) -> None:
        """Drop every record and baseline."""
        with self._lock:
            self._state["entries"] = {}
            self._state["bases"] = {}
            self._save()

    def get_base_content(self, key: str) -> str | None:
        """Return the merge baseline text for *key*, if recorded."""
        with self._lock:
            return self._state["bases"].get(key)

    def set_base_content(self, key: str, content: str) -> None:
        """Record *content* as the merge baseline for *key*."""
        with self._lock:
            self._state["bases"][key] = content
            self._save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        """Path to the state file for this profile."""
        return self._state_dir / f"sync_{self.profile_name}.json"

    @property
    def last_sync(self) -> str | None:
        """ISO 8601 timestamp of the last write, if any."""
        return self._state.get("last_sync")

    def _load(self) -> dict:
        """Load state from disk, or return an empty state."""
        if not self.path.exists():
            return {
                "version": STATE_VERSION,
                "last_sync": None,
                "profile": self.profile_name,
                "entries": {},
                "bases": {},
            }
        with open(self.path, encoding="utf-8") as fh:
            state = json.load(fh)
        state.setdefault("entries", {})
        state.setdefault("bases", {})
        logger.debug(
            "Loaded %d previous-sync records from %s",
            len(state["entries"]),
            self.path,
        )
        return state

    def _save(self) -> None:
        """Persist state atomically.  Caller must hold the lock.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        self._state["last_sync"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

"""Dict-backed ``Filesystem`` implementation.

Useful for dry runs, connection checks and tests.  Two flavours:

* **vault mode** (default) behaves like a local vault: folders are real,
  writing a file creates its parents, times are client times.
* **object-store mode** (``object_store=True``) behaves like an S3 bucket:
  folders exist only as optional marker objects or are synthesized from the
  keys of the objects below them, every object gets a server time and an
  MD5 content tag, and an optional key prefix is applied transparently.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from vault_sync.filesystems.base import common_test_connection_ops
from vault_sync.sync.models import Entity, ancestor_keys

logger = logging.getLogger(__name__)

WALK_PARTIAL_LIMIT = 10


@dataclass
class _StoredObject:
    content: bytes
    mtime: int | None
    ctime: int | None
    server_mtime: int


def _default_clock() -> int:
    return int(time.time() * 1000)


class MemoryFilesystem:
    """In-memory filesystem.

    Args:
        object_store: Emulate an object store instead of a vault.
        prefix: Key prefix applied to every stored key (object-store
            mode); callers never see it.
        clock: Returns the current time in ms (server time source).
    """

    def __init__(
        self,
        *,
        object_store: bool = False,
        prefix: str = "",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.object_store = object_store
        self.prefix = prefix
        self._clock = clock or _default_clock
        self._objects: dict[str, _StoredObject] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Filesystem API
    # ------------------------------------------------------------------

    def walk(self) -> list[Entity]:
        with self._lock:
            keys = [
                k[len(self.prefix) :]
                for k in self._objects
                if k.startswith(self.prefix)
            ]
            entities = {key: self._entity(key) for key in keys}
            if self.object_store:
                for key in keys:
                    for folder in ancestor_keys(key):
                        if folder not in entities:
                            entities[folder] = self._synthesized(folder)
        return [entities[k] for k in sorted(entities)]

    def walk_partial(self) -> list[Entity]:
        return self.walk()[:WALK_PARTIAL_LIMIT]

    def stat(self, key: str) -> Entity:
        with self._lock:
            if self.prefix + key in self._objects:
                return self._entity(key)
            if self.object_store and key.endswith("/") and self._has_children(key):
                return self._synthesized(key)
        raise FileNotFoundError(f"{key} does not exist")

    def mkdir(
        self, key: str, mtime: int | None = None, ctime: int | None = None
    ) -> Entity:
        if not key.endswith("/"):
            key = f"{key}/"
        with self._lock:
            folders = [key] if self.object_store else ancestor_keys(key) + [key]
            for folder in folders:
                self._objects.setdefault(
                    self.prefix + folder,
                    _StoredObject(b"", mtime, ctime, self._clock()),
                )
            return self._entity(key)

    def write(
        self, key: str, content: bytes, mtime: int, ctime: int | None
    ) -> Entity:
        if key.endswith("/"):
            raise IsADirectoryError(f"{key} is a folder")
        with self._lock:
            if not self.object_store:
                for folder in ancestor_keys(key):
                    self._objects.setdefault(
                        self.prefix + folder,
                        _StoredObject(b"", mtime, ctime, self._clock()),
                    )
            self._objects[self.prefix + key] = _StoredObject(
                bytes(content),
                mtime if mtime is not None else self._clock(),
                ctime,
                self._clock(),
            )
            return self._entity(key)

    def read(self, key: str) -> bytes:
        with self._lock:
            stored = self._objects.get(self.prefix + key)
        if stored is None or key.endswith("/"):
            raise FileNotFoundError(f"{key} does not exist")
        return stored.content

    def remove(self, key: str) -> None:
        with self._lock:
            if key.endswith("/") and not self.object_store and self._has_children(key):
                raise OSError(f"Directory not empty: {key}")
            if self._objects.pop(self.prefix + key, None) is None:
                if not (self.object_store and key.endswith("/")):
                    raise FileNotFoundError(f"{key} does not exist")

    def test_connection(self) -> bool:
        return common_test_connection_ops(self)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _has_children(self, folder: str) -> bool:
        full = self.prefix + folder
        return any(k != full and k.startswith(full) for k in self._objects)

    def _entity(self, key: str) -> Entity:
        stored = self._objects[self.prefix + key]
        if key.endswith("/"):
            return Entity(
                key=key,
                size=0,
                created_time_client=stored.ctime,
                modified_time_client=stored.mtime,
                modified_time_server=(
                    stored.server_mtime if self.object_store else None
                ),
            )
        return Entity(
            key=key,
            size=len(stored.content),
            created_time_client=stored.ctime,
            modified_time_client=stored.mtime,
            modified_time_server=(
                stored.server_mtime if self.object_store else None
            ),
            content_tag=(
                hashlib.md5(stored.content).hexdigest()
                if self.object_store
                else None
            ),
        )

    def _synthesized(self, folder: str) -> Entity:
        return Entity(key=folder, size=0, is_synthesized_folder=True)

"""The Filesystem capability the sync engine runs against.

Every backing store (local vault, S3-like object store, ...) implements the
same synchronous surface.  The engine never inspects which backend it talks
to; store-specific behaviour such as key prefixes, second-precision
timestamps or synthesized folders stays inside the adapter.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Protocol

from vault_sync.sync.models import Entity

logger = logging.getLogger(__name__)


class Filesystem(Protocol):
    """Synchronous file operations over one backing store.

    Keys are relative paths using ``/``; folder keys end with ``/``.
    Timestamps are integer milliseconds.
    """

    def walk(self) -> list[Entity]:
        """List every file and folder in the store."""
        ...  # pragma: no cover

    def walk_partial(self) -> list[Entity]:
        """List a bounded subset of the store (used to probe connectivity)."""
        ...  # pragma: no cover

    def stat(self, key: str) -> Entity:
        """Return the current state of *key*."""
        ...  # pragma: no cover

    def mkdir(
        self, key: str, mtime: int | None = None, ctime: int | None = None
    ) -> Entity:
        """Create folder *key* (and any missing parents)."""
        ...  # pragma: no cover

    def write(
        self, key: str, content: bytes, mtime: int, ctime: int | None
    ) -> Entity:
        """Write *content* to *key*, recording the given times."""
        ...  # pragma: no cover

    def read(self, key: str) -> bytes:
        """Return the content of file *key*."""
        ...  # pragma: no cover

    def remove(self, key: str) -> None:
        """Remove file or folder *key*."""
        ...  # pragma: no cover

    def test_connection(self) -> bool:
        """Return ``True`` if the store is reachable and writable."""
        ...  # pragma: no cover


def common_test_connection_ops(
    fs: Filesystem,
    on_error: Callable[[Exception], None] | None = None,
) -> bool:
    """Exercise a filesystem end to end.

    Creates a scratch folder, writes a file, overwrites it, reads it back,
    then deletes the file and the folder.

    Args:
        fs: The filesystem to check.
        on_error: Called with the exception if any step fails.

    Returns:
        ``True`` if every step succeeded, ``False`` otherwise.
    """
    dir_name = f"vault-sync-test-dir-{uuid.uuid4().hex}/"
    file_path = f"{dir_name}vault-sync-test-file-{uuid.uuid4().hex}"
    try:
        logger.debug("Test connection: create directory %s", dir_name)
        fs.mkdir(dir_name)

        logger.debug("Test connection: write file")
        ctime = int(time.time() * 1000)
        fs.write(file_path, bytes(100), ctime, ctime)

        logger.debug("Test connection: overwrite file")
        expected = bytes(range(200))
        fs.write(file_path, expected, int(time.time() * 1000), ctime)

        logger.debug("Test connection: read file")
        if fs.read(file_path) != expected:
            raise ValueError(
                "Downloaded file is not equal to uploaded file."
            )

        logger.debug("Test connection: delete file")
        fs.remove(file_path)

        logger.debug("Test connection: delete directory")
        fs.remove(dir_name)
        return True
    except Exception as exc:
        logger.error("Connection test failed: %s", exc)
        if on_error is not None:
            on_error(exc)
        return False

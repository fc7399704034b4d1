"""Shared pytest fixtures for vault-sync tests."""

import itertools
import threading

import pytest
from dotenv import load_dotenv

from vault_sync.filesystems.memory import MemoryFilesystem
from vault_sync.sync.models import Entity
from vault_sync.sync.state import JsonSyncDatabase

load_dotenv()


class Clock:
    """Deterministic millisecond clock; every call advances by one second."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000):
        self._counter = itertools.count(start, step)
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return next(self._counter)


class RecordingFilesystem(MemoryFilesystem):
    """MemoryFilesystem that records mutating calls and can fail on demand.

    Args:
        log: Shared list receiving ``(name, operation, key)`` tuples.
        name: Label for this side (``"local"``/``"remote"``).
        fail_on: Keys whose mutating operations raise ``OSError``.
    """

    def __init__(self, log, name, fail_on=(), **kwargs):
        super().__init__(**kwargs)
        self.log = log
        self.name = name
        self.fail_on = set(fail_on)

    def _record(self, operation, key):
        if key in self.fail_on:
            raise OSError(f"simulated failure for {key}")
        self.log.append((self.name, operation, key))

    def mkdir(self, key, mtime=None, ctime=None):
        self._record("mkdir", key)
        return super().mkdir(key, mtime, ctime)

    def write(self, key, content, mtime, ctime):
        self._record("write", key)
        return super().write(key, content, mtime, ctime)

    def remove(self, key):
        self._record("remove", key)
        super().remove(key)


def make_file(key: str, mtime: int = 10_000, size: int = 5, **kwargs) -> Entity:
    """Build a file entity with sensible defaults."""
    return Entity(key=key, size=size, modified_time_client=mtime, **kwargs)


def make_folder(key: str) -> Entity:
    """Build a folder entity."""
    return Entity(key=key)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def local_fs(clock):
    """Vault-style local filesystem."""
    return MemoryFilesystem(clock=clock)


@pytest.fixture
def remote_fs(clock):
    """Object-store-style remote filesystem."""
    return MemoryFilesystem(object_store=True, clock=clock)


@pytest.fixture
def database(tmp_path):
    """File-backed previous-sync database in a temp directory."""
    return JsonSyncDatabase(tmp_path / ".vault_sync", "test")

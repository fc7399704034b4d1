"""Tests for the in-memory Filesystem and the shared connection test."""

from __future__ import annotations

import pytest

from vault_sync.filesystems.base import common_test_connection_ops
from vault_sync.filesystems.memory import WALK_PARTIAL_LIMIT, MemoryFilesystem


class TestVaultMode:
    def test_write_creates_parent_folders(self, local_fs):
        local_fs.write("a/b/c.md", b"hi", 5000, 4000)
        assert [e.key for e in local_fs.walk()] == ["a/", "a/b/", "a/b/c.md"]

    def test_stat_reports_client_times_only(self, local_fs):
        entity = local_fs.write("c.md", b"hi", 5000, 4000)
        assert entity.size == 2
        assert entity.modified_time_client == 5000
        assert entity.created_time_client == 4000
        assert entity.modified_time_server is None
        assert entity.content_tag is None
        assert local_fs.stat("c.md") == entity

    def test_read_and_overwrite(self, local_fs):
        local_fs.write("c.md", b"one", 5000, None)
        local_fs.write("c.md", b"two", 6000, None)
        assert local_fs.read("c.md") == b"two"

    def test_missing_key(self, local_fs):
        with pytest.raises(FileNotFoundError):
            local_fs.read("nope.md")
        with pytest.raises(FileNotFoundError):
            local_fs.stat("nope.md")
        with pytest.raises(FileNotFoundError):
            local_fs.remove("nope.md")

    def test_cannot_write_folder_key(self, local_fs):
        with pytest.raises(IsADirectoryError):
            local_fs.write("a/", b"", 1, None)

    def test_non_empty_folder_cannot_be_removed(self, local_fs):
        local_fs.write("a/c.md", b"hi", 5000, None)
        with pytest.raises(OSError):
            local_fs.remove("a/")
        local_fs.remove("a/c.md")
        local_fs.remove("a/")
        assert local_fs.walk() == []

    def test_mkdir_normalises_key(self, local_fs):
        assert local_fs.mkdir("x", 1000).key == "x/"


class TestObjectStoreMode:
    def test_folders_are_synthesized(self, remote_fs):
        remote_fs.write("a/b/c.md", b"hi", 5000, None)
        entities = {e.key: e for e in remote_fs.walk()}
        assert set(entities) == {"a/", "a/b/", "a/b/c.md"}
        assert entities["a/"].is_synthesized_folder
        assert not entities["a/b/c.md"].is_synthesized_folder

    def test_objects_have_server_time_and_tag(self, remote_fs):
        entity = remote_fs.write("c.md", b"hi", 5000, None)
        assert entity.modified_time_server is not None
        assert entity.content_tag == "49f68a5c8493ec2c0bf489821c21fc3b"

    def test_synthesized_folder_stat_and_remove(self, remote_fs):
        remote_fs.write("a/c.md", b"hi", 5000, None)
        assert remote_fs.stat("a/").is_synthesized_folder
        remote_fs.remove("a/")
        assert [e.key for e in remote_fs.walk()] == ["a/", "a/c.md"]

    def test_prefix_is_transparent(self, clock):
        fs = MemoryFilesystem(object_store=True, prefix="vault/", clock=clock)
        fs.write("c.md", b"hi", 5000, None)
        assert [e.key for e in fs.walk()] == ["c.md"]
        assert fs.read("c.md") == b"hi"

    def test_walk_partial_is_bounded(self, remote_fs):
        for i in range(WALK_PARTIAL_LIMIT + 5):
            remote_fs.write(f"{i:02d}.md", b"x", 5000, None)
        assert len(remote_fs.walk_partial()) == WALK_PARTIAL_LIMIT


class TestConnectionTest:
    @pytest.mark.parametrize("object_store", [False, True])
    def test_memory_filesystem_passes(self, object_store):
        fs = MemoryFilesystem(object_store=object_store)
        assert fs.test_connection() is True
        assert fs.walk() == []

    def test_failure_reported(self):
        errors = []

        class ReadOnly(MemoryFilesystem):
            def write(self, key, content, mtime, ctime):
                raise PermissionError("read-only")

        assert common_test_connection_ops(ReadOnly(), errors.append) is False
        assert isinstance(errors[0], PermissionError)

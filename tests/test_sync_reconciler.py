"""Tests for the reconciler: merging three entity lists by path."""

from __future__ import annotations

import pytest
from conftest import make_file, make_folder

from vault_sync.sync.errors import InvalidEntityError
from vault_sync.sync.models import Entity
from vault_sync.sync.reconciler import ensure_mtime_validity, reconcile


class TestReconcile:
    def test_facets_are_assigned_per_source(self):
        local = make_file("a.md", mtime=1000)
        remote = make_file("a.md", mtime=2000)
        previous = make_file("a.md", mtime=500)

        mapping = reconcile([local], [remote], [previous])

        assert list(mapping) == ["a.md"]
        mixed = mapping["a.md"]
        assert mixed.local == local
        assert mixed.remote == remote
        assert mixed.previous_sync == previous
        assert mixed.action is None

    def test_union_of_keys(self):
        mapping = reconcile(
            [make_file("only-local.md")],
            [make_file("only-remote.md")],
            [make_file("only-previous.md")],
        )
        assert set(mapping) == {
            "only-local.md",
            "only-remote.md",
            "only-previous.md",
        }
        assert mapping["only-local.md"].remote is None
        assert mapping["only-remote.md"].local is None
        assert mapping["only-previous.md"].previous_sync is not None

    def test_order_of_lists_does_not_matter(self):
        a = make_file("x.md", mtime=1000)
        b = make_file("x.md", mtime=2000)
        first = reconcile([a, make_folder("f/")], [b], [])
        second = reconcile([make_folder("f/"), a], [b], [])
        assert first == second

    def test_empty_inputs(self):
        assert reconcile([], [], []) == {}

    def test_file_without_mtime_fails_the_pass(self):
        broken = Entity.model_construct(
            key="broken.md",
            size=1,
            created_time_client=None,
            modified_time_client=None,
            modified_time_server=None,
            content_tag=None,
            is_synthesized_folder=False,
        )
        with pytest.raises(InvalidEntityError) as exc_info:
            reconcile([make_file("ok.md")], [broken], [])
        assert exc_info.value.key == "broken.md"
        assert "broken.md" in str(exc_info.value)


class TestEnsureMtimeValidity:
    def test_folder_passes(self):
        folder = make_folder("a/")
        assert ensure_mtime_validity(folder) is folder

    def test_file_with_server_time_passes(self):
        entity = Entity(key="a.md", modified_time_server=1)
        assert ensure_mtime_validity(entity) is entity

"""Tests for the sync planner decision table.

Covers:
- Single-presence rows (download, upload, delete_previous_sync)
- Two-facet rows with and without local/remote changes
- All-three rows (no_op, upload, download, resolver)
- has_changed() precedence: size, then content tag, then mtime tolerance
- Folder keep rule (folders holding pending copies are not deleted)
- Edit/delete policies
- Idempotence
"""

from __future__ import annotations

import pytest
from conftest import make_file, make_folder

from vault_sync.sync.models import Entity, MixedEntity, SyncAction
from vault_sync.sync.planner import SyncPlanner, has_changed, sort_deepest_first
from vault_sync.sync.reconciler import reconcile
from vault_sync.sync.resolver import ConflictFileResolver, MergeResolver


def _plan(local=(), remote=(), previous=(), **kwargs):
    planner = SyncPlanner(**kwargs)
    return planner.plan(reconcile(local, remote, previous))


# ---------------------------------------------------------------------------
# has_changed
# ---------------------------------------------------------------------------


class TestHasChanged:
    def test_size_difference_wins_over_times_and_tags(self):
        a = make_file("a.md", mtime=1000, size=5, content_tag="x")
        b = make_file("a.md", mtime=1000, size=6, content_tag="x")
        assert has_changed(a, b)

    def test_equal_tags_mean_unchanged_despite_times(self):
        a = make_file("a.md", mtime=1000, content_tag="etag")
        b = make_file("a.md", mtime=900_000, content_tag="etag")
        assert not has_changed(a, b)

    def test_different_tags_mean_changed(self):
        a = make_file("a.md", mtime=1000, content_tag="one")
        b = make_file("a.md", mtime=1000, content_tag="two")
        assert has_changed(a, b)

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [(0, False), (1999, False), (2000, False), (2001, True), (-2001, True)],
    )
    def test_mtime_tolerance_is_strict(self, delta, expected):
        a = make_file("a.md", mtime=100_000)
        b = make_file("a.md", mtime=100_000 + delta)
        assert has_changed(a, b) is expected

    def test_one_sided_tag_falls_back_to_mtime(self):
        a = make_file("a.md", mtime=100_000, content_tag="etag")
        b = make_file("a.md", mtime=100_500)
        assert not has_changed(a, b)


def test_sort_deepest_first():
    keys = ["a/", "a/b/c.md", "a/b/", "z.md"]
    assert sort_deepest_first(keys) == ["a/b/c.md", "a/b/", "z.md", "a/"]


# ---------------------------------------------------------------------------
# Decision table
# ---------------------------------------------------------------------------


class TestSinglePresence:
    def test_local_only_uploads(self):
        mapping = _plan(local=[make_file("notes/a.md")])
        assert mapping["notes/a.md"].action == SyncAction.UPLOAD
        assert mapping["notes/a.md"].reason == "File does not exist remotely."

    def test_remote_only_downloads(self):
        mapping = _plan(remote=[make_file("b.md")])
        assert mapping["b.md"].action == SyncAction.DOWNLOAD
        assert mapping["b.md"].changed is True

    def test_previous_only_forgets_record(self):
        mapping = _plan(previous=[make_file("gone.md")])
        entry = mapping["gone.md"]
        assert entry.action == SyncAction.DELETE_PREVIOUS_SYNC
        assert entry.changed is False


class TestTwoFacets:
    def test_remote_unchanged_and_local_deleted_deletes_remote(self):
        record = make_file("notes/b.md", mtime=10_000)
        mapping = _plan(remote=[record], previous=[record])
        assert mapping["notes/b.md"].action == SyncAction.DELETE_REMOTE

    def test_local_unchanged_and_remote_deleted_deletes_local(self):
        record = make_file("c.md", mtime=10_000)
        mapping = _plan(local=[record], previous=[record])
        assert mapping["c.md"].action == SyncAction.DELETE_LOCAL
        assert mapping["c.md"].reason == "File deleted remotely."

    def test_both_new_without_baseline_goes_to_resolver(self):
        mapping = _plan(
            local=[make_file("c.md", mtime=5000)],
            remote=[make_file("c.md", mtime=9000)],
        )
        assert mapping["c.md"].action == SyncAction.DOWNLOAD

    def test_both_new_equal_times_favour_local(self):
        mapping = _plan(
            local=[make_file("c.md", mtime=9000)],
            remote=[make_file("c.md", mtime=9000)],
        )
        assert mapping["c.md"].action == SyncAction.UPLOAD

    def test_both_new_folders_are_no_op(self):
        mapping = _plan(local=[make_folder("f/")], remote=[make_folder("f/")])
        assert mapping["f/"].action == SyncAction.NO_OP


class TestEditDeletePolicies:
    def _local_edited(self):
        return {
            "local": [make_file("doc.md", mtime=50_000, size=9)],
            "previous": [make_file("doc.md", mtime=10_000, size=5)],
        }

    def _remote_edited(self):
        return {
            "remote": [make_file("doc.md", mtime=50_000, size=9)],
            "previous": [make_file("doc.md", mtime=10_000, size=5)],
        }

    def test_resurrect_is_default(self):
        assert (
            _plan(**self._local_edited())["doc.md"].action == SyncAction.UPLOAD
        )
        assert (
            _plan(**self._remote_edited())["doc.md"].action
            == SyncAction.DOWNLOAD
        )

    def test_propagate_delete(self):
        policy = {"edit_delete_policy": "propagate_delete"}
        assert (
            _plan(**self._local_edited(), **policy)["doc.md"].action
            == SyncAction.DELETE_LOCAL
        )
        assert (
            _plan(**self._remote_edited(), **policy)["doc.md"].action
            == SyncAction.DELETE_REMOTE
        )

    def test_conflict_leaves_path_for_review(self):
        policy = {"edit_delete_policy": "conflict"}
        assert (
            _plan(**self._local_edited(), **policy)["doc.md"].action
            == SyncAction.CONFLICT
        )
        assert (
            _plan(**self._remote_edited(), **policy)["doc.md"].action
            == SyncAction.CONFLICT
        )

    def test_conflict_keeps_parent_folder_locally(self):
        mapping = _plan(
            local=[
                make_folder("f/"),
                make_file("f/x.md", mtime=90_000, size=8),
            ],
            previous=[
                make_folder("f/"),
                make_file("f/x.md", mtime=10_000, size=5),
            ],
            edit_delete_policy="conflict",
        )
        assert mapping["f/x.md"].action == SyncAction.CONFLICT
        assert mapping["f/"].action == SyncAction.NO_OP
        assert mapping["f/"].reason == "Folder holds an unresolved conflict."

    def test_conflict_keeps_parent_folders_remotely(self):
        mapping = _plan(
            remote=[
                make_folder("a/"),
                make_folder("a/b/"),
                make_file("a/b/x.md", mtime=90_000, size=8),
            ],
            previous=[
                make_folder("a/"),
                make_folder("a/b/"),
                make_file("a/b/x.md", mtime=10_000, size=5),
            ],
            edit_delete_policy="conflict",
        )
        assert mapping["a/b/x.md"].action == SyncAction.CONFLICT
        assert mapping["a/b/"].action == SyncAction.NO_OP
        assert mapping["a/"].action == SyncAction.NO_OP

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError, match="edit/delete policy"):
            SyncPlanner(edit_delete_policy="keep-both")


class TestAllThree:
    def test_unchanged(self):
        record = make_file("a.md")
        mapping = _plan(local=[record], remote=[record], previous=[record])
        assert mapping["a.md"].action == SyncAction.NO_OP
        assert mapping["a.md"].reason == "File not modified."

    def test_local_changed(self):
        record = make_file("a.md", size=5)
        mapping = _plan(
            local=[make_file("a.md", size=7)],
            remote=[record],
            previous=[record],
        )
        assert mapping["a.md"].action == SyncAction.UPLOAD

    def test_remote_changed(self):
        record = make_file("a.md", size=5)
        mapping = _plan(
            local=[record],
            remote=[make_file("a.md", size=7)],
            previous=[record],
        )
        assert mapping["a.md"].action == SyncAction.DOWNLOAD

    def test_both_changed_uses_resolver(self):
        record = make_file("a.md", size=5)
        mapping = _plan(
            local=[make_file("a.md", size=6)],
            remote=[make_file("a.md", size=7)],
            previous=[record],
            resolver=MergeResolver(),
        )
        assert mapping["a.md"].action == SyncAction.MERGE

    def test_both_changed_conflict_copy(self):
        record = make_file("a.png", size=5)
        mapping = _plan(
            local=[make_file("a.png", size=6)],
            remote=[make_file("a.png", size=7)],
            previous=[record],
            resolver=ConflictFileResolver(),
        )
        assert mapping["a.png"].action == SyncAction.CREATE_CONFLICT_FILE

    def test_folder_everywhere_is_no_op(self):
        folder = make_folder("f/")
        mapping = _plan(local=[folder], remote=[folder], previous=[folder])
        assert mapping["f/"].action == SyncAction.NO_OP


class TestFolders:
    def test_folder_holding_uploads_is_recreated_remotely(self):
        mapping = _plan(
            local=[make_folder("a/"), make_file("a/new.md")],
            previous=[make_folder("a/")],
        )
        assert mapping["a/new.md"].action == SyncAction.UPLOAD
        assert mapping["a/"].action == SyncAction.UPLOAD

    def test_empty_folder_deleted_remotely_is_deleted_locally(self):
        mapping = _plan(
            local=[make_folder("a/")],
            previous=[make_folder("a/")],
        )
        assert mapping["a/"].action == SyncAction.DELETE_LOCAL

    def test_folder_holding_downloads_is_recreated_locally(self):
        mapping = _plan(
            remote=[make_folder("a/"), make_folder("a/b/"), make_file("a/b/x.md")],
            previous=[make_folder("a/"), make_folder("a/b/")],
        )
        assert mapping["a/b/x.md"].action == SyncAction.DOWNLOAD
        assert mapping["a/b/"].action == SyncAction.DOWNLOAD
        assert mapping["a/"].action == SyncAction.DOWNLOAD

    def test_folder_deleted_locally_with_unchanged_files(self):
        record = make_file("a/x.md")
        mapping = _plan(
            remote=[make_folder("a/"), record],
            previous=[make_folder("a/"), record],
        )
        assert mapping["a/x.md"].action == SyncAction.DELETE_REMOTE
        assert mapping["a/"].action == SyncAction.DELETE_REMOTE


class TestPlanProperties:
    def test_every_entry_gets_exactly_one_action(self):
        mapping = _plan(
            local=[make_file("a.md"), make_folder("f/")],
            remote=[make_file("b.md")],
            previous=[make_file("c.md")],
        )
        assert all(entry.action is not None for entry in mapping.values())

    def test_planning_is_idempotent(self):
        record = make_file("shared.md", size=5)
        mapping = reconcile(
            [make_file("local.md"), make_file("shared.md", size=8)],
            [make_file("remote.md"), record],
            [record, make_file("old.md")],
        )
        planner = SyncPlanner()
        first = {k: e.action for k, e in planner.plan(mapping).items()}
        second = {k: e.action for k, e in planner.plan(mapping).items()}
        assert first == second

    def test_decide_without_facets(self):
        decision = SyncPlanner().decide(MixedEntity(key="x.md"))
        assert decision.action == SyncAction.NO_OP

    def test_server_only_times_are_compared(self):
        previous = Entity(key="s.md", size=1, modified_time_server=10_000)
        remote = Entity(key="s.md", size=1, modified_time_server=10_500)
        mapping = _plan(remote=[remote], previous=[previous])
        assert mapping["s.md"].action == SyncAction.DELETE_REMOTE

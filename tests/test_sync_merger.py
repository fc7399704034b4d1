"""Tests for the three-way merge helper."""

from __future__ import annotations

from vault_sync.sync.merger import attempt_merge

BASE = "line one\nline two\nline three\n"


class TestAttemptMerge:
    def test_non_overlapping_changes_merge_cleanly(self):
        local = "line one (local)\nline two\nline three\n"
        remote = "line one\nline two\nline three (remote)\n"

        merged, clean = attempt_merge(BASE, local, remote)

        assert clean
        assert merged == "line one (local)\nline two\nline three (remote)\n"

    def test_identical_changes_are_clean(self):
        changed = "line one\nline 2\nline three\n"
        merged, clean = attempt_merge(BASE, changed, changed)
        assert clean
        assert merged == changed

    def test_only_remote_changed(self):
        remote = BASE + "line four\n"
        merged, clean = attempt_merge(BASE, BASE, remote)
        assert clean
        assert merged == remote

    def test_overlapping_changes_leave_markers(self):
        local = "line one\nline two LOCAL\nline three\n"
        remote = "line one\nline two REMOTE\nline three\n"

        merged, clean = attempt_merge(BASE, local, remote)

        assert not clean
        assert "<<<<<<< LOCAL" in merged
        assert "=======" in merged
        assert ">>>>>>> REMOTE" in merged
        assert "line two LOCAL" in merged
        assert "line two REMOTE" in merged

    def test_empty_base_with_different_content_conflicts(self):
        merged, clean = attempt_merge("", "alpha\n", "beta\n")
        assert not clean
        assert "alpha" in merged and "beta" in merged

    def test_empty_base_with_same_content_is_clean(self):
        merged, clean = attempt_merge("", "same\n", "same\n")
        assert clean
        assert merged == "same\n"

"""Sync report formatting functions.

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``report_to_json`` -- structured dict for machine consumers.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport

from .models import SyncAction

# Actions that change nothing on either side.
_QUIET_ACTIONS = (SyncAction.NO_OP, SyncAction.DELETE_PREVIOUS_SYNC)

_DISPLAY_ORDER = [
    SyncAction.UPLOAD,
    SyncAction.DOWNLOAD,
    SyncAction.MERGE,
    SyncAction.CREATE_CONFLICT_FILE,
    SyncAction.DELETE_REMOTE,
    SyncAction.DELETE_LOCAL,
    SyncAction.CONFLICT,
]

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged paths are summarised by count only.
    """
    lines: list[str] = []

    header = f"Sync report for '{report.profile_name}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Status: {report.status.value}")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Synced {len(report.results)} paths: "
        f"{len(report.uploaded)} uploaded, "
        f"{len(report.downloaded)} downloaded, "
        f"{len(report.deleted_local) + len(report.deleted_remote)} deleted, "
        f"{len(report.merged)} merged, "
        f"{len(report.conflicts)} conflicts, {len(report.errors)} errors"
    )
    lines.append("")

    sections = [
        ("Uploaded:", report.uploaded),
        ("Downloaded:", report.downloaded),
        ("Deleted (remote):", report.deleted_remote),
        ("Deleted (local):", report.deleted_local),
    ]
    for title, results in sections:
        if not results:
            continue
        lines.append(title)
        for r in results:
            lines.append(f"  {r.key}")
        lines.append("")

    if report.merged:
        lines.append("Merged:")
        for r in report.merged:
            suffix = "" if r.clean is not False else " (conflict markers)"
            lines.append(f"  {r.key}{suffix}")
        lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for r in report.conflicts:
            lines.append(f"  {r.key}: {r.reason or 'both sides changed'}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.key}: {r.error}")
        lines.append("")

    if report.unchanged:
        lines.append(f"Unchanged: {len(report.unchanged)} paths")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed action is shown as ``[ACTION]`` followed by its paths.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Profile: {report.profile_name}")
    lines.append("")

    groups: dict[SyncAction, list[str]] = defaultdict(list)
    for r in report.results:
        groups[r.action].append(r.key)

    for action in _DISPLAY_ORDER:
        if action not in groups:
            continue
        label = action.value.upper().replace("_", " ")
        lines.append(f"[{label}]")
        for key in groups[action]:
            lines.append(f"  {key}")
        lines.append("")

    quiet = sum(len(groups.get(a, [])) for a in _QUIET_ACTIONS)
    if quiet > 0:
        lines.append(f"Unchanged: {quiet} paths")
        lines.append("")

    if not any(a not in _QUIET_ACTIONS for a in groups):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation."""
    results_list = []
    for r in report.results:
        entry: dict = {
            "key": r.key,
            "action": r.action.value,
            "success": r.success,
        }
        if r.reason:
            entry["reason"] = r.reason
        if r.error:
            entry["error"] = r.error
        if r.clean is not None:
            entry["clean"] = r.clean
        results_list.append(entry)

    return {
        "profile_name": report.profile_name,
        "dry_run": report.dry_run,
        "status": report.status.value,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "uploaded": len(report.uploaded),
            "downloaded": len(report.downloaded),
            "deleted_local": len(report.deleted_local),
            "deleted_remote": len(report.deleted_remote),
            "merged": len(report.merged),
            "conflicts": len(report.conflicts),
            "unchanged": len(report.unchanged),
            "errors": len(report.errors),
        },
        "results": results_list,
    }

"""Three-way merge for mergeable (text) files.

Uses the ``merge3`` library (the same algorithm used by Bazaar/Breezy).  The
changes between the baseline and the remote version are replayed onto the
local version; the merge is *clean* only if no hunk conflicted.

Conflict markers follow Git convention with custom labels:
``<<<<<<< LOCAL``, ``=======``, ``>>>>>>> REMOTE``.
"""

from __future__ import annotations

from merge3 import Merge3

# merge3 appends " <name>" to the start and end markers.
START_MARKER = "<<<<<<<"
MID_MARKER = "======="
END_MARKER = ">>>>>>>"


def attempt_merge(
    base_content: str,
    local_content: str,
    remote_content: str,
) -> tuple[str, bool]:
    """Perform a three-way merge of local and remote changes against a base.

    Args:
        base_content: Content as of the last sync ("" when unknown).
        local_content: The current local content.
        remote_content: The current remote content.

    Returns:
        A tuple of ``(merged_text, clean)`` where *merged_text* is the
        result of the merge (possibly containing conflict markers) and
        *clean* is ``True`` if every hunk merged without conflict.
    """
    m3 = Merge3(
        base_content.splitlines(True),
        local_content.splitlines(True),
        remote_content.splitlines(True),
    )

    clean = all(
        region[0] != "conflict" for region in m3.merge_regions()
    )
    merged_text = "".join(
        m3.merge_lines(
            name_a="LOCAL",
            name_b="REMOTE",
            start_marker=START_MARKER,
            mid_marker=MID_MARKER,
            end_marker=END_MARKER,
        )
    )
    return merged_text, clean

"""
Hunk Coalescer

Merges nearby hunks into fewer, larger analysis units so fewer analyzer
calls are made, while keeping each unit under a size limit.
"""

from .models import DiffHunk

# Default maximum gap in lines between hunks to merge
DEFAULT_MAX_GAP_LINES = 30

# Default maximum unit size in characters
DEFAULT_MAX_CHUNK_SIZE = 8000

# Placed between merged hunk contents
MERGE_SEPARATOR = "\n...\n"


def merge_hunks(a: DiffHunk, b: DiffHunk) -> DiffHunk:
    """
    Merge two hunks into one spanning both.

    Ranges are the union of both inputs so overlapping hunks are still
    represented correctly. The header comes from ``a``.
    """
    new_start = min(a.new_start, b.new_start)
    new_end = max(a.new_start + a.new_count, b.new_start + b.new_count)
    old_start = min(a.old_start, b.old_start)
    old_end = max(a.old_start + a.old_count, b.old_start + b.old_count)

    return DiffHunk(
        old_start=old_start,
        old_count=old_end - old_start,
        new_start=new_start,
        new_count=new_end - new_start,
        header=a.header,
        content=a.content + MERGE_SEPARATOR + b.content,
        lines=a.lines + b.lines,
    )


def calculate_gap(a: DiffHunk, b: DiffHunk) -> int:
    """Lines between the end of ``a`` and the start of ``b`` in the new file."""
    return b.new_start - (a.new_start + a.new_count)


class HunkCoalescer:
    """Greedy single-pass merger of adjacent hunks."""

    def __init__(
        self,
        max_gap_lines: int = DEFAULT_MAX_GAP_LINES,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    ):
        """
        Initialize coalescer.

        Args:
            max_gap_lines: Max lines between hunks that may still be merged
            max_chunk_size: Max combined content size in characters
        """
        self.max_gap_lines = max_gap_lines
        self.max_chunk_size = max_chunk_size

    def can_merge(self, current: DiffHunk, nxt: DiffHunk) -> bool:
        """Check both the gap and the size constraint."""
        if calculate_gap(current, nxt) > self.max_gap_lines:
            return False
        return len(current.content) + len(nxt.content) <= self.max_chunk_size

    def coalesce(self, hunks: list[DiffHunk]) -> list[DiffHunk]:
        """
        Coalesce hunks that are close together.

        Strategy:
        1. Sort by new-file start line (stable on ties)
        2. Walk left to right, merging into an accumulator while allowed
        3. Flush the accumulator when the next hunk cannot be merged

        A hunk already larger than ``max_chunk_size`` is emitted as-is.
        """
        if len(hunks) <= 1:
            return list(hunks)

        ordered = sorted(hunks, key=lambda h: h.new_start)
        result: list[DiffHunk] = []
        current = ordered[0]

        for nxt in ordered[1:]:
            if self.can_merge(current, nxt):
                current = merge_hunks(current, nxt)
            else:
                result.append(current)
                current = nxt

        result.append(current)
        return result

    def would_reduce(self, hunks: list[DiffHunk]) -> bool:
        """Check if coalescing would strictly reduce the hunk count."""
        if len(hunks) <= 1:
            return False
        return len(self.coalesce(hunks)) < len(hunks)


def coalesce_hunks(
    hunks: list[DiffHunk],
    max_gap_lines: int = DEFAULT_MAX_GAP_LINES,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
) -> list[DiffHunk]:
    """Coalesce nearby hunks; see ``HunkCoalescer.coalesce``."""
    return HunkCoalescer(max_gap_lines, max_chunk_size).coalesce(hunks)


def would_coalesce_reduce(
    hunks: list[DiffHunk],
    max_gap_lines: int = DEFAULT_MAX_GAP_LINES,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
) -> bool:
    """Check if coalescing would reduce the number of hunks."""
    return HunkCoalescer(max_gap_lines, max_chunk_size).would_reduce(hunks)

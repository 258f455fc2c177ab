"""
Data models for diff decomposition.

Defines the structures produced by the patch parser, classifier and
coalescer, and handed to the skill runner.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

DiffStatus = Literal["added", "removed", "modified", "renamed"]


class FileMode(str, Enum):
    """How a changed file is processed."""

    PER_HUNK = "per-hunk"  # Analyze each (coalesced) hunk
    WHOLE_FILE = "whole-file"  # One unit for the whole patch
    SKIP = "skip"  # Excluded entirely


@dataclass(frozen=True)
class DiffHunk:
    """A single contiguous change region within a file's diff."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    content: str
    lines: tuple[str, ...] = ()
    header: str | None = None

    @property
    def new_end(self) -> int:
        """First line after the hunk in the new file."""
        return self.new_start + self.new_count

    @property
    def new_range(self) -> range:
        """Lines covered in the new file, ``[new_start, new_start + new_count)``."""
        return range(self.new_start, self.new_end)

    def expanded_range(self, context_lines: int = 20) -> range:
        """New-file range padded by ``context_lines`` on both ends, never below line 1."""
        return range(max(1, self.new_start - context_lines), self.new_end + context_lines)

    @property
    def line_label(self) -> str:
        """Human-readable line range, e.g. ``"10-15"`` or ``"10"``."""
        end = max(self.new_start, self.new_end - 1)
        if end == self.new_start:
            return str(self.new_start)
        return f"{self.new_start}-{end}"


@dataclass
class ParsedDiff:
    """Diff for a single file."""

    filename: str
    status: DiffStatus = "modified"
    hunks: list[DiffHunk] = field(default_factory=list)
    raw_patch: str = ""
    old_filename: str | None = None  # For renames

    @property
    def lines_added(self) -> int:
        return sum(1 for h in self.hunks for line in h.lines if line.startswith("+"))

    @property
    def lines_deleted(self) -> int:
        return sum(1 for h in self.hunks for line in h.lines if line.startswith("-"))


@dataclass(frozen=True)
class SkippedSpan:
    """A malformed hunk marker the parser ignored."""

    line_number: int  # 1-based position in the patch
    text: str


@dataclass
class PatchParseResult:
    """Hunks recovered from a patch plus anything that was skipped."""

    hunks: list[DiffHunk] = field(default_factory=list)
    skipped: list[SkippedSpan] = field(default_factory=list)


@dataclass(frozen=True)
class HunkWithContext:
    """A hunk plus surrounding unchanged lines from the current file."""

    filename: str
    hunk: DiffHunk
    context_before: tuple[str, ...] = ()
    context_after: tuple[str, ...] = ()
    context_start_line: int = 1
    language: str = ""


@dataclass
class PreparedFile:
    """A file ready for analysis: its ordered analysis units."""

    filename: str
    hunks: list[HunkWithContext] = field(default_factory=list)
    mode: FileMode = FileMode.PER_HUNK

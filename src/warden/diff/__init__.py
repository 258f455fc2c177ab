"""
Diff Decomposition

Parses unified diffs, classifies files and coalesces hunks into bounded
analysis units.
"""

from .classifier import (
    BUILTIN_SKIP_PATTERNS,
    Classification,
    FileClassifier,
    classify_file,
    should_skip_file,
)
from .coalescer import HunkCoalescer, coalesce_hunks, would_coalesce_reduce
from .context import ContextExpander, detect_language, format_hunk_for_analysis, whole_file_hunk
from .models import (
    DiffHunk,
    FileMode,
    HunkWithContext,
    ParsedDiff,
    PatchParseResult,
    PreparedFile,
    SkippedSpan,
)
from .parser import (
    PatchParser,
    get_expanded_line_range,
    get_hunk_line_range,
    parse_file_diff,
    parse_patch,
)

__all__ = [
    "BUILTIN_SKIP_PATTERNS",
    "Classification",
    "ContextExpander",
    "DiffHunk",
    "FileClassifier",
    "FileMode",
    "HunkCoalescer",
    "HunkWithContext",
    "ParsedDiff",
    "PatchParseResult",
    "PatchParser",
    "PreparedFile",
    "SkippedSpan",
    "classify_file",
    "coalesce_hunks",
    "detect_language",
    "format_hunk_for_analysis",
    "get_expanded_line_range",
    "get_hunk_line_range",
    "parse_file_diff",
    "parse_patch",
    "should_skip_file",
    "whole_file_hunk",
    "would_coalesce_reduce",
]

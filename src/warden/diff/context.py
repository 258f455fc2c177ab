"""
Hunk Context

Pads hunks with surrounding lines from the current file content and
formats them for the analyzer.
"""

from pathlib import Path

import structlog

from .coalescer import MERGE_SEPARATOR
from .models import DiffHunk, HunkWithContext, ParsedDiff

logger = structlog.get_logger(__name__)

# File extension to language mapping
EXT_LANGUAGE_MAP = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "java": "java",
    "kt": "kotlin",
    "cs": "csharp",
    "cpp": "cpp",
    "c": "c",
    "h": "c",
    "hpp": "cpp",
    "swift": "swift",
    "php": "php",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "yml": "yaml",
    "yaml": "yaml",
    "json": "json",
    "toml": "toml",
    "md": "markdown",
    "sql": "sql",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "less": "less",
}


def detect_language(filename: str) -> str:
    """Detect language from file extension; unknown extensions map to themselves."""
    name = filename.rsplit("/", 1)[-1]
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return EXT_LANGUAGE_MAP.get(ext, ext)


def whole_file_hunk(diff: ParsedDiff) -> DiffHunk | None:
    """
    Collapse every hunk of a file into one unit.

    The unit spans the union of all hunk ranges and carries the raw patch
    as its content. Returns None when the patch has no hunks.
    """
    if not diff.hunks:
        return None

    new_start = min(h.new_start for h in diff.hunks)
    new_end = max(h.new_end for h in diff.hunks)
    old_start = min(h.old_start for h in diff.hunks)
    old_end = max(h.old_start + h.old_count for h in diff.hunks)

    return DiffHunk(
        old_start=old_start,
        old_count=old_end - old_start,
        new_start=new_start,
        new_count=new_end - new_start,
        header=diff.hunks[0].header,
        content=diff.raw_patch or MERGE_SEPARATOR.join(h.content for h in diff.hunks),
        lines=tuple(line for h in diff.hunks for line in h.lines),
    )


class ContextExpander:
    """Reads file content once per run and slices context around hunks."""

    def __init__(self, repo_path: str | Path, context_lines: int = 20):
        """
        Initialize expander.

        Args:
            repo_path: Repository root the filenames are relative to
            context_lines: Lines of context on each side of a hunk
        """
        self.repo_path = Path(repo_path)
        self.context_lines = context_lines
        self._cache: dict[str, list[str] | None] = {}

    def clear_cache(self) -> None:
        self._cache.clear()

    def _file_lines(self, filename: str) -> list[str] | None:
        if filename in self._cache:
            return self._cache[filename]

        path = self.repo_path / filename
        lines: list[str] | None = None
        if path.is_file():
            try:
                lines = path.read_text(encoding="utf-8").split("\n")
            except (OSError, UnicodeDecodeError) as e:
                # Binary or unreadable: analyze without context
                logger.debug("Could not read file for context", path=str(path), error=str(e))

        self._cache[filename] = lines
        return lines

    def _read_lines(self, filename: str, start: int, end: int) -> tuple[str, ...]:
        """Lines ``start`` through ``end - 1`` (1-based), empty when unavailable."""
        lines = self._file_lines(filename)
        start = max(1, start)
        if not lines or end <= start:
            return ()
        return tuple(lines[start - 1 : end - 1])

    def expand(self, filename: str, hunk: DiffHunk) -> HunkWithContext:
        """Expand a hunk with surrounding context from the file."""
        expanded = hunk.expanded_range(self.context_lines)
        return HunkWithContext(
            filename=filename,
            hunk=hunk,
            context_before=self._read_lines(filename, expanded.start, hunk.new_start),
            context_after=self._read_lines(filename, hunk.new_end, expanded.stop),
            context_start_line=expanded.start,
            language=detect_language(filename),
        )

    def expand_diff(self, diff: ParsedDiff) -> list[HunkWithContext]:
        """Expand every hunk in a parsed diff."""
        return [self.expand(diff.filename, hunk) for hunk in diff.hunks]


def format_hunk_for_analysis(hunk_ctx: HunkWithContext) -> str:
    """Format a hunk with context as markdown for the analyzer."""
    hunk = hunk_ctx.hunk
    lines = [
        f"## File: {hunk_ctx.filename}",
        f"## Language: {hunk_ctx.language}",
        f"## Hunk: lines {hunk.line_label}",
    ]
    if hunk.header:
        lines.append(f"## Scope: {hunk.header}")
    lines.append("")

    if hunk_ctx.context_before:
        lines.extend([
            f"### Context Before (lines {hunk_ctx.context_start_line}-{hunk.new_start - 1})",
            f"```{hunk_ctx.language}",
            "\n".join(hunk_ctx.context_before),
            "```",
            "",
        ])

    lines.extend(["### Changes", "```diff", hunk.content, "```", ""])

    if hunk_ctx.context_after:
        # Pure deletions at the top of a file have new_end 0
        after_start = max(1, hunk.new_end)
        after_end = after_start + len(hunk_ctx.context_after) - 1
        lines.extend([
            f"### Context After (lines {after_start}-{after_end})",
            f"```{hunk_ctx.language}",
            "\n".join(hunk_ctx.context_after),
            "```",
        ])

    return "\n".join(lines)

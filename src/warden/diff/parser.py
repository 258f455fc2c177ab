"""
Unified Diff Parser

Parses unified diff patches into structured hunks. Parsing is best-effort:
malformed hunk markers are skipped and reported, never raised.
"""

import re

import structlog

from .models import DiffHunk, DiffStatus, ParsedDiff, PatchParseResult, SkippedSpan

logger = structlog.get_logger(__name__)


class PatchParser:
    """Parse unified diff text into hunks and per-file diffs."""

    # Regex patterns for parsing diff output
    FILE_HEADER = re.compile(r"^diff --git a/(.+) b/(.+)$")
    HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
    RENAME_FROM = re.compile(r"^rename from (.+)$")
    NEW_FILE = re.compile(r"^new file mode")
    DELETED_FILE = re.compile(r"^deleted file mode")

    def parse(self, patch: str) -> PatchParseResult:
        """Parse a single file's patch into hunks, collecting skipped markers."""
        result = PatchParseResult()
        lines = patch.split("\n")
        if patch.endswith("\n"):
            lines.pop()

        marker: re.Match[str] | None = None
        content: list[str] = []
        body: list[str] = []

        def flush() -> None:
            if marker is not None:
                result.hunks.append(self._build_hunk(marker, content, body))

        for line_number, line in enumerate(lines, start=1):
            hunk_match = self.HUNK_HEADER.match(line)
            if hunk_match:
                flush()
                marker, content, body = hunk_match, [line], []
                continue

            if line.startswith("@@") or line.startswith("diff --git "):
                flush()
                marker, content, body = None, [], []
                if line.startswith("@@"):
                    result.skipped.append(SkippedSpan(line_number=line_number, text=line))
                continue

            if marker is None:
                # File headers or the body of a skipped marker
                continue

            content.append(line)
            if not line.startswith("\\"):
                body.append(line)

        flush()

        if result.skipped:
            logger.debug(
                "Skipped malformed hunk markers",
                count=len(result.skipped),
                first_line=result.skipped[0].line_number,
            )
        return result

    def parse_diff(self, diff_output: str) -> list[ParsedDiff]:
        """Split full ``git diff`` output into per-file parsed diffs."""
        files: list[ParsedDiff] = []
        current: ParsedDiff | None = None
        patch_lines: list[str] = []

        def finish() -> None:
            if current is not None:
                while patch_lines and patch_lines[-1] == "":
                    patch_lines.pop()
                current.raw_patch = "\n".join(patch_lines)
                current.hunks = self.parse(current.raw_patch).hunks
                files.append(current)

        for line in diff_output.split("\n"):
            file_match = self.FILE_HEADER.match(line)
            if file_match:
                finish()
                old_path, new_path = file_match.groups()
                current = ParsedDiff(
                    filename=new_path,
                    old_filename=old_path if old_path != new_path else None,
                    status="renamed" if old_path != new_path else "modified",
                )
                patch_lines = []
                continue

            if current is None:
                continue

            # Everything from the first hunk marker on belongs to the patch
            if patch_lines or line.startswith("@@"):
                patch_lines.append(line)
                continue

            if self.NEW_FILE.match(line):
                current.status = "added"
            elif self.DELETED_FILE.match(line):
                current.status = "removed"
            else:
                rename_from = self.RENAME_FROM.match(line)
                if rename_from:
                    current.status = "renamed"
                    current.old_filename = rename_from.group(1)

        finish()
        return files

    def _build_hunk(
        self, marker: re.Match[str], content: list[str], body: list[str]
    ) -> DiffHunk:
        old_start, old_count, new_start, new_count, header = marker.groups()
        return DiffHunk(
            old_start=int(old_start),
            old_count=int(old_count or "1"),
            new_start=int(new_start),
            new_count=int(new_count or "1"),
            header=header.strip() or None,
            content="\n".join(content),
            lines=tuple(body),
        )


_parser = PatchParser()


def parse_patch(patch: str) -> list[DiffHunk]:
    """Parse a unified diff patch into hunks."""
    return _parser.parse(patch).hunks


def parse_file_diff(
    filename: str, patch: str, status: DiffStatus = "modified"
) -> ParsedDiff:
    """Parse a file's patch into a structured diff object."""
    return ParsedDiff(
        filename=filename,
        status=status,
        hunks=parse_patch(patch),
        raw_patch=patch,
    )


def get_hunk_line_range(hunk: DiffHunk) -> range:
    """Lines the hunk covers in the new file (half-open)."""
    return hunk.new_range


def get_expanded_line_range(hunk: DiffHunk, context_lines: int = 20) -> range:
    """Hunk range padded with context lines, clamped at line 1."""
    return hunk.expanded_range(context_lines)

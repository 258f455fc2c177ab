"""
File Classifier

Decides how each changed file is processed: per hunk, as a whole file,
or not at all. Caller patterns are checked first so they can override
the built-in skip list.
"""

from dataclasses import dataclass
from typing import Iterable, Protocol

from ..triggers.matcher import match_glob
from .models import FileMode, ParsedDiff


class PatternLike(Protocol):
    pattern: str
    mode: FileMode


FilePatterns = Iterable["PatternLike | tuple[str, FileMode | str]"]


# Always applied after caller patterns
BUILTIN_SKIP_PATTERNS = [
    # Package manager lock files
    "**/pnpm-lock.yaml",
    "**/package-lock.json",
    "**/yarn.lock",
    "**/Cargo.lock",
    "**/go.sum",
    "**/poetry.lock",
    "**/composer.lock",
    "**/Gemfile.lock",
    "**/Pipfile.lock",
    "**/bun.lockb",
    # Minified / bundled code
    "**/*.min.js",
    "**/*.min.css",
    "**/*.bundle.js",
    "**/*.bundle.css",
    # Build output
    "**/dist/**",
    "**/build/**",
    "**/node_modules/**",
    "**/.next/**",
    "**/out/**",
    "**/coverage/**",
    # Generated code
    "**/*.generated.*",
    "**/*.g.ts",
    "**/*.g.dart",
    "**/generated/**",
    "**/__generated__/**",
]


@dataclass(frozen=True)
class Classification:
    """A file's mode and the pattern that decided it."""

    mode: FileMode
    pattern: str | None = None
    builtin: bool = False


def _normalize(patterns: FilePatterns | None) -> list[tuple[str, FileMode]]:
    normalized: list[tuple[str, FileMode]] = []
    for entry in patterns or []:
        if isinstance(entry, tuple):
            pattern, mode = entry
        else:
            pattern, mode = entry.pattern, entry.mode
        normalized.append((pattern, FileMode(mode)))
    return normalized


class FileClassifier:
    """Classify files into processing modes."""

    def __init__(self, patterns: FilePatterns | None = None):
        """
        Initialize classifier.

        Args:
            patterns: Ordered (pattern, mode) pairs or FilePattern objects;
                the first match wins.
        """
        self.patterns = _normalize(patterns)

    def explain(self, filename: str) -> Classification:
        """Classify a file and report which pattern decided it."""
        for pattern, mode in self.patterns:
            if match_glob(pattern, filename):
                return Classification(mode=mode, pattern=pattern)

        for pattern in BUILTIN_SKIP_PATTERNS:
            if match_glob(pattern, filename):
                return Classification(mode=FileMode.SKIP, pattern=pattern, builtin=True)

        return Classification(mode=FileMode.PER_HUNK)

    def classify(self, filename: str) -> FileMode:
        """Classify a single file."""
        return self.explain(filename).mode

    def classify_all(self, diffs: list[ParsedDiff]) -> dict[FileMode, list[ParsedDiff]]:
        """Classify all files and group by mode, preserving input order."""
        result: dict[FileMode, list[ParsedDiff]] = {mode: [] for mode in FileMode}
        for diff in diffs:
            result[self.classify(diff.filename)].append(diff)
        return result


def classify_file(filename: str, patterns: FilePatterns | None = None) -> FileMode:
    """
    Classify a file to determine how it should be processed.

    Order of precedence:
    1. Caller patterns, in order (allows overriding built-in skips)
    2. Built-in skip patterns
    3. ``per-hunk`` when nothing matched
    """
    return FileClassifier(patterns).classify(filename)


def should_skip_file(filename: str, patterns: FilePatterns | None = None) -> bool:
    """Check if a file is excluded from analysis."""
    return classify_file(filename, patterns) is FileMode.SKIP

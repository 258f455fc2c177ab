"""Pydantic models shared across the Warden pipeline.

Findings and usage records cross the boundary with the external analyzer, so
they are validated with pydantic. Diff structures live in ``warden.diff.models``.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """How severe a finding is, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Position on the scale (critical is 0)."""
        return SEVERITY_ORDER[self]


class SeverityThreshold(str, Enum):
    """Severity threshold for output options; ``off`` disables the check."""

    OFF = "off"
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# Lower = more severe
SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}


class Confidence(str, Enum):
    """How confident the analyzer is in a finding."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Location(BaseModel):
    """Location of a finding within a file."""

    path: str
    start_line: int = Field(gt=0)
    end_line: int | None = Field(default=None, gt=0)


class SuggestedFix(BaseModel):
    """A proposed fix expressed as a unified diff."""

    description: str
    diff: str


class Finding(BaseModel):
    """A single issue reported by the analyzer."""

    id: str
    severity: Severity
    confidence: Confidence | None = None
    title: str
    description: str
    location: Location | None = None
    suggested_fix: SuggestedFix | None = None
    elapsed_ms: float | None = Field(default=None, ge=0)

    @property
    def dedup_key(self) -> tuple[str, str | None, int | None]:
        """Key used to collapse duplicates across hunks."""
        if self.location is None:
            return (self.id, None, None)
        return (self.id, self.location.path, self.location.start_line)


class UsageStats(BaseModel):
    """Token and cost accounting for one or more analyzer calls."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cache_read_input_tokens: int | None = Field(default=None, ge=0)
    cache_creation_input_tokens: int | None = Field(default=None, ge=0)
    cost_usd: float = Field(default=0.0, ge=0)

    @classmethod
    def empty(cls) -> "UsageStats":
        """Zeroed usage with every optional counter populated."""
        return cls(
            input_tokens=0,
            output_tokens=0,
            cache_read_input_tokens=0,
            cache_creation_input_tokens=0,
            cost_usd=0.0,
        )

    def __add__(self, other: "UsageStats") -> "UsageStats":
        return UsageStats(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_read_input_tokens=(self.cache_read_input_tokens or 0)
            + (other.cache_read_input_tokens or 0),
            cache_creation_input_tokens=(self.cache_creation_input_tokens or 0)
            + (other.cache_creation_input_tokens or 0),
            cost_usd=self.cost_usd + other.cost_usd,
        )


class SkippedFile(BaseModel):
    """A file excluded from analysis by a classification pattern."""

    filename: str
    reason: Literal["pattern", "builtin"]
    pattern: str | None = None


class AnalysisError(BaseModel):
    """A hunk or file that could not be analyzed."""

    filename: str
    line_range: str | None = None
    message: str


class SkillReport(BaseModel):
    """Output of running one skill over a change set."""

    skill: str
    summary: str
    findings: list[Finding] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    duration_ms: int = 0
    usage: UsageStats = Field(default_factory=UsageStats.empty)
    skipped_files: list[SkippedFile] = Field(default_factory=list)
    failed_hunks: int = 0
    errors: list[AnalysisError] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def partial(self) -> bool:
        """True when some of the change set was not analyzed."""
        return bool(self.errors) or self.cancelled


# =============================================================================
# Event context
# =============================================================================

EventType = Literal[
    "pull_request",
    "issues",
    "issue_comment",
    "pull_request_review",
    "pull_request_review_comment",
    "schedule",
]

FileStatus = Literal[
    "added", "removed", "modified", "renamed", "copied", "changed", "unchanged"
]


class FileChange(BaseModel):
    """One changed file in a pull request."""

    filename: str
    status: FileStatus = "modified"
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    patch: str | None = None


class PullRequestContext(BaseModel):
    """The pull request an event refers to."""

    number: int = Field(gt=0)
    title: str = ""
    body: str | None = None
    author: str = ""
    base_branch: str = "main"
    head_branch: str = ""
    head_sha: str = ""
    files: list[FileChange] = Field(default_factory=list)


class RepositoryContext(BaseModel):
    """Repository an event was raised in."""

    owner: str
    name: str
    default_branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class EventContext(BaseModel):
    """Everything the pipeline knows about the incoming event."""

    event_type: str
    action: str = ""
    repository: RepositoryContext
    pull_request: PullRequestContext | None = None
    repo_path: str = "."

    @property
    def changed_files(self) -> list[str] | None:
        """Paths of changed files, or None when the event carries no change set."""
        if self.pull_request is None:
            return None
        return [f.filename for f in self.pull_request.files]

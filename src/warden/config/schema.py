"""Pydantic schema for ``warden.toml`` configuration.

Validated once at load time so the matcher and runner never re-check
whether optional fields are present.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..diff.models import FileMode
from ..models import SeverityThreshold

ToolName = Literal["Read", "Write", "Edit", "Bash", "Glob", "Grep", "WebFetch", "WebSearch"]

TriggerEvent = Literal["pull_request", "issues", "issue_comment", "schedule"]


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ToolConfig(_Schema):
    """Tools a skill may or may not use."""

    allowed: list[ToolName] | None = None
    denied: list[ToolName] | None = None


class SkillDefinition(_Schema):
    """A named analysis policy."""

    name: str = Field(min_length=1)
    description: str = ""
    prompt: str
    tools: ToolConfig | None = None
    output_schema: str | None = None
    # Directory the skill was loaded from (scripts/, references/, assets/)
    root_dir: str | None = None


class PathFilter(_Schema):
    """Include / exclude globs for a trigger."""

    paths: list[str] | None = None
    ignore_paths: list[str] | None = Field(default=None, alias="ignorePaths")


class OutputConfig(_Schema):
    """How a trigger's report is surfaced."""

    fail_on: SeverityThreshold | None = Field(default=None, alias="failOn")
    comment_on: SeverityThreshold | None = Field(default=None, alias="commentOn")
    max_findings: int | None = Field(default=None, gt=0, alias="maxFindings")
    comment_on_success: bool = Field(default=False, alias="commentOnSuccess")


class Trigger(_Schema):
    """Binds an event, actions and path filters to a skill."""

    name: str = Field(min_length=1)
    event: TriggerEvent
    actions: list[str] | None = None
    skill: str = Field(min_length=1)
    # Remote repository reference, "owner/repo" or "owner/repo@sha"
    remote: str | None = None
    filters: PathFilter | None = None
    output: OutputConfig | None = None
    model: str | None = None
    max_turns: int | None = Field(default=None, gt=0, alias="maxTurns")

    @model_validator(mode="after")
    def _check_event_requirements(self) -> "Trigger":
        if self.event != "schedule" and not self.actions:
            raise ValueError("actions is required for non-schedule events")
        if self.event == "schedule" and not (self.filters and self.filters.paths):
            raise ValueError("filters.paths is required for schedule events")
        return self


class FilePattern(_Schema):
    """Glob pattern paired with a processing mode."""

    pattern: str
    mode: FileMode = FileMode.SKIP


class CoalesceConfig(_Schema):
    """Options for merging nearby hunks."""

    enabled: bool = True
    max_gap_lines: int = Field(default=30, ge=0, alias="maxGapLines")
    max_chunk_size: int = Field(default=8000, gt=0, alias="maxChunkSize")


class ChunkingConfig(_Schema):
    """Controls how changed files are split into analysis units."""

    file_patterns: list[FilePattern] | None = Field(default=None, alias="filePatterns")
    coalesce: CoalesceConfig | None = None


class Defaults(_Schema):
    """Values triggers inherit when they do not set their own."""

    filters: PathFilter | None = None
    output: OutputConfig | None = None
    model: str | None = None
    max_turns: int | None = Field(default=None, gt=0, alias="maxTurns")
    default_branch: str | None = Field(default=None, alias="defaultBranch")
    chunking: ChunkingConfig | None = None


class RunnerConfig(_Schema):
    concurrency: int | None = Field(default=None, gt=0)


class WardenConfig(_Schema):
    """Top-level ``warden.toml``."""

    version: Literal[1]
    defaults: Defaults | None = None
    triggers: list[Trigger] = Field(default_factory=list)
    skills: list[SkillDefinition] | None = None
    runner: RunnerConfig | None = None


class ResolvedTrigger(Trigger):
    """A trigger with defaults applied; filters and output always present."""

    filters: PathFilter = Field(default_factory=PathFilter)
    output: OutputConfig = Field(default_factory=OutputConfig)

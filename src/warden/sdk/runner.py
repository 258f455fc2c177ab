"""
Skill Runner

Runs a skill over a change set: prepares analysis units per file, analyzes
files concurrently (hunks sequentially within a file), and reduces the
per-file results into one SkillReport.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

import structlog

from ..config.schema import (
    CoalesceConfig,
    FilePattern,
    ResolvedTrigger,
    SkillDefinition,
    WardenConfig,
)
from ..config.settings import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CONTEXT_LINES,
    DEFAULT_MAX_TURNS,
    DEFAULT_SKILL_CONCURRENCY,
    RunnerSettings,
)
from ..diff.classifier import FileClassifier
from ..diff.coalescer import coalesce_hunks
from ..diff.context import ContextExpander, whole_file_hunk
from ..diff.models import DiffStatus, FileMode, PreparedFile
from ..diff.parser import parse_file_diff
from ..models import (
    AnalysisError,
    EventContext,
    Finding,
    Severity,
    SkillReport,
    SkippedFile,
    UsageStats,
)
from .analyzer import AnalysisRequest, Analyzer, build_system_prompt, build_user_prompt
from .cancellation import AnalysisCancelledError, CancellationToken

logger = structlog.get_logger(__name__)

# GitHub file statuses mapped onto diff statuses
STATUS_MAP: dict[str, DiffStatus] = {
    "added": "added",
    "removed": "removed",
    "modified": "modified",
    "renamed": "renamed",
    "copied": "added",
    "changed": "modified",
    "unchanged": "modified",
}


class SkillRunnerError(Exception):
    """The runner could not run a skill at all."""


class FileTaskStatus(str, Enum):
    """Lifecycle of one file task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class SkillRunnerCallbacks:
    """Progress hooks. Exceptions raised here are logged and ignored."""

    # time.monotonic() at skill start, used to stamp findings with elapsed time
    skill_start_time: float | None = None
    on_file_start: Callable[[str, int, int], Any] | None = None
    on_hunk_start: Callable[[str, int, int, str], Any] | None = None
    on_hunk_complete: Callable[[str, int, list[Finding]], Any] | None = None
    on_file_complete: Callable[[str, int, int], Any] | None = None


@dataclass
class SkillRunnerOptions:
    """Execution options for one skill run."""

    api_key: str | None = None
    max_turns: int = DEFAULT_MAX_TURNS
    model: str | None = None

    # Lines of context around each hunk
    context_lines: int = DEFAULT_CONTEXT_LINES

    # Files in flight at once; parallel=False processes one file at a time
    parallel: bool = True
    concurrency: int = DEFAULT_CONCURRENCY

    # Skills in flight at once in run_skills()
    skill_concurrency: int = DEFAULT_SKILL_CONCURRENCY

    file_patterns: list[FilePattern] | None = None
    coalesce: CoalesceConfig = field(default_factory=CoalesceConfig)

    callbacks: SkillRunnerCallbacks = field(default_factory=SkillRunnerCallbacks)
    cancellation: CancellationToken | None = None

    @classmethod
    def from_settings(cls, settings: RunnerSettings, **overrides: Any) -> "SkillRunnerOptions":
        """Build options from runtime settings."""
        values: dict[str, Any] = {
            "api_key": settings.api_key,
            "max_turns": settings.max_turns,
            "model": settings.model,
            "context_lines": settings.context_lines,
            "parallel": settings.parallel,
            "concurrency": settings.concurrency,
            "skill_concurrency": settings.skill_concurrency,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_config(
        cls,
        config: WardenConfig,
        trigger: ResolvedTrigger | None = None,
        settings: RunnerSettings | None = None,
        **overrides: Any,
    ) -> "SkillRunnerOptions":
        """
        Build options from ``warden.toml`` layered over runtime settings.

        Precedence, highest first: ``overrides``, the resolved trigger
        (model, max turns), the config file (runner concurrency, chunking,
        defaults), then the settings.
        """
        values: dict[str, Any] = {}
        defaults = config.defaults

        if config.runner and config.runner.concurrency is not None:
            values["concurrency"] = config.runner.concurrency

        chunking = defaults.chunking if defaults else None
        if chunking and chunking.file_patterns is not None:
            values["file_patterns"] = list(chunking.file_patterns)
        if chunking and chunking.coalesce is not None:
            values["coalesce"] = chunking.coalesce

        model = (trigger.model if trigger else None) or (defaults.model if defaults else None)
        if model:
            values["model"] = model
        max_turns = (trigger.max_turns if trigger else None) or (
            defaults.max_turns if defaults else None
        )
        if max_turns:
            values["max_turns"] = max_turns

        values.update(overrides)
        return cls.from_settings(settings or RunnerSettings(), **values)


@dataclass
class FileAnalysisResult:
    """Outcome of one file task; owned by that task until the reducer runs."""

    filename: str
    status: FileTaskStatus = FileTaskStatus.PENDING
    findings: list[Finding] = field(default_factory=list)
    usage: UsageStats = field(default_factory=UsageStats.empty)
    hunks_analyzed: int = 0
    failed_hunks: int = 0
    errors: list[AnalysisError] = field(default_factory=list)


@dataclass
class PreparedFiles:
    """Files ready for analysis plus those excluded by classification."""

    files: list[PreparedFile] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)


def aggregate_usage(usages: Iterable[UsageStats]) -> UsageStats:
    """Sum usage records; absent optional counters count as zero."""
    total = UsageStats.empty()
    for usage in usages:
        total = total + usage
    return total


def deduplicate_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Collapse findings with the same id, path and line, keeping the first."""
    seen: set[tuple[str, str | None, int | None]] = set()
    unique: list[Finding] = []
    for finding in findings:
        key = finding.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)
    return unique


def generate_summary(skill_name: str, findings: list[Finding]) -> str:
    """Summarize findings by severity."""
    if not findings:
        return f"{skill_name}: No issues found"

    counts = {severity: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity] += 1

    parts = [f"{count} {severity.value}" for severity, count in counts.items() if count]
    plural = "" if len(findings) == 1 else "s"
    return f"{skill_name}: Found {len(findings)} issue{plural} ({', '.join(parts)})"


def prepare_files(
    context: EventContext,
    *,
    context_lines: int = DEFAULT_CONTEXT_LINES,
    file_patterns: list[FilePattern] | None = None,
    coalesce: CoalesceConfig | None = None,
) -> PreparedFiles:
    """
    Turn the event's per-file patches into analysis units.

    Skipped files are recorded, whole-file files become a single unit and
    per-hunk files are coalesced (when enabled) before context expansion.
    """
    prepared = PreparedFiles()
    if context.pull_request is None:
        return prepared

    coalesce = coalesce or CoalesceConfig()
    classifier = FileClassifier(file_patterns)
    expander = ContextExpander(context.repo_path, context_lines)

    for change in context.pull_request.files:
        if not change.patch:
            continue

        classification = classifier.explain(change.filename)
        if classification.mode is FileMode.SKIP:
            prepared.skipped.append(
                SkippedFile(
                    filename=change.filename,
                    reason="builtin" if classification.builtin else "pattern",
                    pattern=classification.pattern,
                )
            )
            continue

        diff = parse_file_diff(
            change.filename, change.patch, STATUS_MAP.get(change.status, "modified")
        )

        if classification.mode is FileMode.WHOLE_FILE:
            unit = whole_file_hunk(diff)
            hunks = [unit] if unit else []
        elif coalesce.enabled:
            hunks = coalesce_hunks(diff.hunks, coalesce.max_gap_lines, coalesce.max_chunk_size)
        else:
            hunks = diff.hunks

        if not hunks:
            continue

        prepared.files.append(
            PreparedFile(
                filename=change.filename,
                mode=classification.mode,
                hunks=[expander.expand(change.filename, h) for h in hunks],
            )
        )

    return prepared


class SkillRunner:
    """
    Runs skills through an analyzer with bounded concurrency.

    Files are analyzed in parallel up to ``options.concurrency``; hunks
    within a file are analyzed in order. One failing hunk or file never
    aborts the others, and a raised cancellation token stops scheduling
    while keeping results already returned.
    """

    def __init__(self, analyzer: Analyzer, options: SkillRunnerOptions | None = None):
        """
        Initialize the runner.

        Args:
            analyzer: Engine that analyzes each unit
            options: Execution options (defaults apply when omitted)
        """
        self.analyzer = analyzer
        self.options = options or SkillRunnerOptions()

    @property
    def cancellation(self) -> CancellationToken | None:
        return self.options.cancellation

    def _cancelled(self) -> bool:
        token = self.cancellation
        return token is not None and token.cancelled

    async def run(self, skill: SkillDefinition, context: EventContext) -> SkillReport:
        """
        Run a skill over the event's change set.

        Raises:
            SkillRunnerError: The skill or context cannot be run at all
        """
        start_time = time.monotonic()

        if context.pull_request is None:
            raise SkillRunnerError("Pull request context required for skill execution")
        if not skill.prompt.strip():
            raise SkillRunnerError(f"Skill '{skill.name}' has an empty prompt")

        prepared = prepare_files(
            context,
            context_lines=self.options.context_lines,
            file_patterns=self.options.file_patterns,
            coalesce=self.options.coalesce,
        )

        log = logger.bind(skill=skill.name)
        if prepared.skipped:
            log.info("Skipping files", count=len(prepared.skipped))

        if not prepared.files:
            return SkillReport(
                skill=skill.name,
                summary="No code changes to analyze",
                skipped_files=prepared.skipped,
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        log.info(
            "Running skill",
            files=len(prepared.files),
            hunks=sum(len(f.hunks) for f in prepared.files),
        )

        system_prompt = build_system_prompt(skill)
        results = await self._analyze_files_parallel(prepared.files, system_prompt)

        # Results are in file order regardless of completion order
        findings = deduplicate_findings(f for r in results for f in r.findings)
        errors = [e for r in results for e in r.errors]
        failed_hunks = sum(r.failed_hunks for r in results)
        cancelled = self._cancelled()

        summary = generate_summary(skill.name, findings)
        if failed_hunks:
            summary += f" ({failed_hunks} hunk{'' if failed_hunks == 1 else 's'} failed to analyze)"
        if cancelled:
            summary += " (cancelled)"

        report = SkillReport(
            skill=skill.name,
            summary=summary,
            findings=findings,
            usage=aggregate_usage(r.usage for r in results),
            duration_ms=int((time.monotonic() - start_time) * 1000),
            skipped_files=prepared.skipped,
            failed_hunks=failed_hunks,
            errors=errors,
            cancelled=cancelled,
            metadata={
                "files": {r.filename: r.status.value for r in results},
            },
        )

        log.info(
            "Skill complete",
            findings=len(findings),
            failed_hunks=failed_hunks,
            cancelled=cancelled,
            duration_ms=report.duration_ms,
        )
        return report

    async def _analyze_files_parallel(
        self, files: list[PreparedFile], system_prompt: str
    ) -> list[FileAnalysisResult]:
        """Analyze files with a concurrency limit; every task settles before reducing."""
        limit = self.options.concurrency if self.options.parallel else 1
        semaphore = asyncio.Semaphore(max(1, limit))
        total = len(files)

        async def analyze_with_semaphore(index: int, file: PreparedFile) -> FileAnalysisResult:
            async with semaphore:
                if self._cancelled():
                    return FileAnalysisResult(filename=file.filename, status=FileTaskStatus.CANCELLED)
                return await self.analyze_file(file, system_prompt, index, total)

        tasks = [analyze_with_semaphore(i, f) for i, f in enumerate(files)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        settled: list[FileAnalysisResult] = []
        for file, result in zip(files, results):
            if isinstance(result, FileAnalysisResult):
                settled.append(result)
            elif isinstance(result, asyncio.CancelledError):
                settled.append(FileAnalysisResult(filename=file.filename, status=FileTaskStatus.CANCELLED))
            elif isinstance(result, Exception):
                logger.error("File analysis failed", filename=file.filename, error=str(result))
                settled.append(
                    FileAnalysisResult(
                        filename=file.filename,
                        status=FileTaskStatus.FAILED,
                        errors=[AnalysisError(filename=file.filename, message=str(result))],
                    )
                )
            else:
                raise result

        return settled

    async def analyze_file(
        self,
        file: PreparedFile,
        system_prompt: str,
        file_index: int = 0,
        total_files: int = 1,
    ) -> FileAnalysisResult:
        """Analyze one prepared file's hunks sequentially."""
        callbacks = self.options.callbacks
        token = self.cancellation
        result = FileAnalysisResult(filename=file.filename, status=FileTaskStatus.RUNNING)
        usages: list[UsageStats] = []
        total_hunks = len(file.hunks)

        self._notify(callbacks.on_file_start, file.filename, file_index, total_files)

        for hunk_num, hunk_ctx in enumerate(file.hunks, start=1):
            if self._cancelled():
                result.status = FileTaskStatus.CANCELLED
                break

            line_range = hunk_ctx.hunk.line_label
            self._notify(callbacks.on_hunk_start, file.filename, hunk_num, total_hunks, line_range)

            request = AnalysisRequest(
                hunk=hunk_ctx,
                system_prompt=system_prompt,
                user_prompt=build_user_prompt(hunk_ctx),
                model=self.options.model,
                max_turns=self.options.max_turns,
                api_key=self.options.api_key,
                cancellation=token,
            )

            try:
                analysis = await self.analyzer.analyze(request)
            except AnalysisCancelledError:
                result.status = FileTaskStatus.CANCELLED
                break
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if not self._cancelled() or (task is not None and task.cancelling()):
                    raise
                result.status = FileTaskStatus.CANCELLED
                break
            except Exception as e:
                if self._cancelled():
                    result.status = FileTaskStatus.CANCELLED
                    break
                logger.warning(
                    "Hunk analysis failed",
                    filename=file.filename,
                    lines=line_range,
                    error=str(e),
                )
                result.failed_hunks += 1
                result.errors.append(
                    AnalysisError(filename=file.filename, line_range=line_range, message=str(e))
                )
                self._notify(callbacks.on_hunk_complete, file.filename, hunk_num, [])
                continue

            findings = self._attach_elapsed_time(analysis.findings)
            self._notify(callbacks.on_hunk_complete, file.filename, hunk_num, findings)
            result.findings.extend(findings)
            usages.append(analysis.usage)
            result.hunks_analyzed += 1

        result.usage = aggregate_usage(usages)
        if result.status is FileTaskStatus.RUNNING:
            all_failed = result.failed_hunks > 0 and result.hunks_analyzed == 0
            result.status = FileTaskStatus.FAILED if all_failed else FileTaskStatus.COMPLETED

        self._notify(callbacks.on_file_complete, file.filename, file_index, total_files)
        return result

    def _attach_elapsed_time(self, findings: list[Finding]) -> list[Finding]:
        start = self.options.callbacks.skill_start_time
        if start is None:
            return list(findings)
        elapsed_ms = (time.monotonic() - start) * 1000
        return [f.model_copy(update={"elapsed_ms": elapsed_ms}) for f in findings]

    def _notify(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        """Invoke a progress callback without letting it affect the run."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.warning(
                "Progress callback failed",
                callback=getattr(callback, "__name__", repr(callback)),
                error=str(e),
            )


@dataclass
class SkillRunResult:
    """Report or fatal error for one skill in a multi-skill run."""

    skill: str
    report: SkillReport | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_skills(
    runner: SkillRunner,
    skills: list[SkillDefinition],
    context: EventContext,
    concurrency: int | None = None,
) -> list[SkillRunResult]:
    """
    Run several skills over the same change set.

    A skill that cannot run is recorded with its error; its siblings
    still run. Results are in the order of ``skills``. ``concurrency``
    defaults to the runner's ``skill_concurrency`` option.
    """
    if concurrency is None:
        concurrency = runner.options.skill_concurrency
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run_one(skill: SkillDefinition) -> SkillRunResult:
        async with semaphore:
            try:
                report = await runner.run(skill, context)
            except SkillRunnerError as e:
                logger.error("Skill could not run", skill=skill.name, error=str(e))
                return SkillRunResult(skill=skill.name, error=e)
            except Exception as e:
                logger.error("Skill failed", skill=skill.name, error=str(e), exc_info=True)
                return SkillRunResult(skill=skill.name, error=e)
            return SkillRunResult(skill=skill.name, report=report)

    return list(await asyncio.gather(*(run_one(s) for s in skills)))

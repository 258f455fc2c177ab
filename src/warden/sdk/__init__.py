"""Analyzer contract and the skill runner."""

from .analyzer import (
    AnalysisRequest,
    AnalysisResult,
    Analyzer,
    LLMAnalyzer,
    build_system_prompt,
    build_user_prompt,
    parse_findings,
)
from .cancellation import AnalysisCancelledError, CancellationToken
from .runner import (
    FileAnalysisResult,
    FileTaskStatus,
    PreparedFiles,
    SkillRunner,
    SkillRunnerCallbacks,
    SkillRunnerError,
    SkillRunnerOptions,
    SkillRunResult,
    aggregate_usage,
    deduplicate_findings,
    generate_summary,
    prepare_files,
    run_skills,
)

__all__ = [
    "AnalysisCancelledError",
    "AnalysisRequest",
    "AnalysisResult",
    "Analyzer",
    "CancellationToken",
    "FileAnalysisResult",
    "FileTaskStatus",
    "LLMAnalyzer",
    "PreparedFiles",
    "SkillRunResult",
    "SkillRunner",
    "SkillRunnerCallbacks",
    "SkillRunnerError",
    "SkillRunnerOptions",
    "aggregate_usage",
    "build_system_prompt",
    "build_user_prompt",
    "deduplicate_findings",
    "generate_summary",
    "parse_findings",
    "prepare_files",
    "run_skills",
]

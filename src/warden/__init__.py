"""
Warden

Decomposes code changes into bounded analysis units, runs an analyzer over
them with bounded concurrency and cooperative cancellation, and reduces the
results into deduplicated, severity-ranked reports.
"""

from .models import (
    AnalysisError,
    EventContext,
    FileChange,
    Finding,
    Location,
    PullRequestContext,
    RepositoryContext,
    Severity,
    SeverityThreshold,
    SkillReport,
    SkippedFile,
    SuggestedFix,
    UsageStats,
)

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "EventContext",
    "FileChange",
    "Finding",
    "Location",
    "PullRequestContext",
    "RepositoryContext",
    "Severity",
    "SeverityThreshold",
    "SkillReport",
    "SkippedFile",
    "SuggestedFix",
    "UsageStats",
]

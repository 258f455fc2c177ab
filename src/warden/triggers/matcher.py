"""
Trigger Matcher

Decides whether a trigger applies to an incoming event and whether a
report crosses a severity threshold. Never raises on unknown input: a
trigger that does not fit the event simply does not match.
"""

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Iterable

from ..models import (
    SEVERITY_ORDER,
    EventContext,
    Finding,
    Severity,
    SeverityThreshold,
    SkillReport,
)

if TYPE_CHECKING:
    from ..config.schema import OutputConfig, Trigger


@lru_cache(maxsize=512)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob into an anchored regex."""
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")  # zero or more leading directories
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def match_glob(pattern: str, path: str) -> bool:
    """
    Match a glob pattern against a full file path.

    ``**/`` matches zero or more leading path segments, ``**`` matches
    anything including ``/``, ``*`` matches anything except ``/`` and ``?``
    matches one character except ``/``. Everything else is literal.
    """
    return _compile_glob(pattern).fullmatch(path) is not None


def match_any(patterns: Iterable[str], path: str) -> bool:
    return any(match_glob(p, path) for p in patterns)


def match_trigger(trigger: "Trigger", context: EventContext) -> bool:
    """Check if a trigger matches the given event context."""
    if trigger.event != context.event_type:
        return False

    # Scheduled runs carry no action
    if context.action and context.event_type != "schedule":
        if context.action not in (trigger.actions or []):
            return False

    filenames = context.changed_files
    filters = trigger.filters
    if filters is None or filenames is None:
        return True

    if filters.paths:
        if not any(match_any(filters.paths, f) for f in filenames):
            return False

    if filters.ignore_paths:
        if all(match_any(filters.ignore_paths, f) for f in filenames):
            return False

    return True


def _threshold_rank(threshold: Severity | SeverityThreshold | str) -> int | None:
    """Rank of a threshold, or None when the check is disabled."""
    value = threshold.value if isinstance(threshold, (Severity, SeverityThreshold)) else threshold
    if value == SeverityThreshold.OFF.value:
        return None
    return SEVERITY_ORDER[Severity(value)]


def filter_findings_by_severity(
    findings: list[Finding], threshold: Severity | SeverityThreshold | str | None = None
) -> list[Finding]:
    """
    Keep findings at or above a severity threshold.

    No threshold returns the findings unchanged; ``off`` returns nothing.
    """
    if threshold is None:
        return list(findings)
    rank = _threshold_rank(threshold)
    if rank is None:
        return []
    return [f for f in findings if f.severity.rank <= rank]


def should_fail(report: SkillReport, fail_on: Severity | SeverityThreshold | str) -> bool:
    """Check if a report has any findings at or above the threshold."""
    return count_findings_at_or_above(report, fail_on) > 0


def count_findings_at_or_above(
    report: SkillReport, fail_on: Severity | SeverityThreshold | str
) -> int:
    """Count findings at or above the given severity threshold."""
    if _threshold_rank(fail_on) is None:
        return 0
    return len(filter_findings_by_severity(report.findings, fail_on))


def count_severity(reports: Iterable[SkillReport], severity: Severity | str) -> int:
    """Count findings of exactly one severity across reports."""
    target = Severity(severity)
    return sum(1 for r in reports for f in r.findings if f.severity == target)


def select_findings_to_comment(
    report: SkillReport, output: "OutputConfig | None" = None
) -> list[Finding]:
    """
    Findings a host should surface as comments.

    Applies ``comment_on`` then keeps the ``max_findings`` most severe,
    preserving report order among equals.
    """
    if output is None:
        return list(report.findings)

    findings = filter_findings_by_severity(report.findings, output.comment_on)
    if output.max_findings is not None and len(findings) > output.max_findings:
        findings = sorted(findings, key=lambda f: f.severity.rank)[: output.max_findings]
    return findings

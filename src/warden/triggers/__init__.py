"""Trigger eligibility and severity thresholds."""

from .matcher import (
    count_findings_at_or_above,
    count_severity,
    filter_findings_by_severity,
    match_glob,
    match_trigger,
    select_findings_to_comment,
    should_fail,
)

__all__ = [
    "count_findings_at_or_above",
    "count_severity",
    "filter_findings_by_severity",
    "match_glob",
    "match_trigger",
    "select_findings_to_comment",
    "should_fail",
]

"""
Shared fixtures for Warden tests.

Provides sample patches, event contexts and fake analyzers so the runner
can be exercised without an external engine.
"""

from pathlib import Path
from typing import Callable

import pytest

from warden.config.schema import SkillDefinition
from warden.diff.models import DiffHunk
from warden.models import (
    EventContext,
    FileChange,
    Finding,
    PullRequestContext,
    RepositoryContext,
    UsageStats,
)
from warden.sdk.analyzer import AnalysisRequest, AnalysisResult


# =============================================================================
# SAMPLE PATCHES
# =============================================================================

SIMPLE_PATCH = """\
@@ -10,6 +10,8 @@ def helper():
     pass

 def new_function():
+    # Added a comment
+    print("hello")
     return True"""

TWO_HUNK_PATCH = """\
@@ -1,3 +1,4 @@ import os
 import os
+import sys

 def main():
@@ -20,3 +21,4 @@ def main():
     run()
+    cleanup()
     return 0"""


def make_hunk(
    new_start: int,
    new_count: int,
    content: str | None = None,
    header: str | None = None,
    old_start: int | None = None,
    old_count: int | None = None,
) -> DiffHunk:
    """Helper to create DiffHunk objects."""
    old_start = new_start if old_start is None else old_start
    old_count = new_count if old_count is None else old_count
    marker = f"@@ -{old_start},{old_count} +{new_start},{new_count} @@"
    body = content if content is not None else f"+line {new_start}"
    return DiffHunk(
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        header=header,
        content=f"{marker}\n{body}",
        lines=tuple(body.split("\n")),
    )


def make_finding(
    finding_id: str,
    severity: str = "medium",
    path: str | None = "src/app.py",
    line: int | None = 1,
) -> Finding:
    """Helper to create Finding objects."""
    location = {"path": path, "start_line": line} if path and line else None
    return Finding.model_validate({
        "id": finding_id,
        "severity": severity,
        "title": f"Issue {finding_id}",
        "description": "Something looks wrong",
        "location": location,
    })


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================

@pytest.fixture
def skill() -> SkillDefinition:
    """A minimal security skill."""
    return SkillDefinition(
        name="security-review",
        description="Find security issues",
        prompt="Look for injection vulnerabilities and unsafe input handling.",
    )


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., EventContext]:
    """
    Factory for pull request event contexts.

    Accepts ``{filename: patch}`` and writes nothing to disk; use
    ``tmp_path`` directly to provide file content for context expansion.
    """

    def _make(
        patches: dict[str, str | None],
        event_type: str = "pull_request",
        action: str = "opened",
    ) -> EventContext:
        return EventContext(
            event_type=event_type,
            action=action,
            repository=RepositoryContext(owner="acme", name="shop"),
            pull_request=PullRequestContext(
                number=42,
                title="Add checkout",
                author="dev",
                head_branch="feature/checkout",
                files=[
                    FileChange(filename=name, status="modified", patch=patch)
                    for name, patch in patches.items()
                ],
            ),
            repo_path=str(tmp_path),
        )

    return _make


# =============================================================================
# FAKE ANALYZERS
# =============================================================================

class ScriptedAnalyzer:
    """
    Analyzer whose behaviour is chosen per file.

    ``behaviours`` maps a filename to a callable receiving the request and
    returning an AnalysisResult (or raising). Unlisted files yield one
    finding per hunk located at the hunk's first new line.
    """

    def __init__(self, behaviours: dict[str, Callable[[AnalysisRequest], AnalysisResult]] | None = None):
        self.behaviours = behaviours or {}
        self.calls: list[tuple[str, int]] = []

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        self.calls.append((request.filename, request.hunk.hunk.new_start))
        behaviour = self.behaviours.get(request.filename)
        if behaviour is not None:
            return behaviour(request)
        return AnalysisResult(
            findings=[
                make_finding(
                    f"{request.filename}-issue",
                    path=request.filename,
                    line=request.hunk.hunk.new_start,
                )
            ],
            usage=UsageStats(input_tokens=10, output_tokens=5, cost_usd=0.01),
        )


@pytest.fixture
def scripted_analyzer() -> ScriptedAnalyzer:
    return ScriptedAnalyzer()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Tests exercising the full pipeline end to end"
    )

"""
Analyzer Contract

The runner hands each analysis unit to an ``Analyzer``. The engine itself
is opaque; ``LLMAnalyzer`` adapts any text-generating provider to the
contract by prompting for JSON findings and validating the response.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from ..config.schema import SkillDefinition
from ..diff.context import format_hunk_for_analysis
from ..diff.models import HunkWithContext
from ..models import Finding, UsageStats
from .cancellation import AnalysisCancelledError, CancellationToken

logger = structlog.get_logger(__name__)

# Approximate characters per token
CHARS_PER_TOKEN = 4

# Model pricing in cents per 1M tokens (input/output)
MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-3-5-sonnet-latest": {"input": 300, "output": 1500},
    "claude-3-5-haiku-latest": {"input": 80, "output": 400},
    "claude-sonnet-4-20250514": {"input": 300, "output": 1500},
    "claude-sonnet-4-latest": {"input": 300, "output": 1500},
    "claude-opus-4-20250514": {"input": 1500, "output": 7500},
    "claude-opus-4-latest": {"input": 1500, "output": 7500},
    "gpt-4o": {"input": 250, "output": 1000},
    "gpt-4o-mini": {"input": 15, "output": 60},
}

# Used when the model is unknown or unset
DEFAULT_PRICING = {"input": 300, "output": 1500}


@dataclass
class AnalysisRequest:
    """One unit of work for an analyzer."""

    hunk: HunkWithContext
    system_prompt: str
    user_prompt: str
    model: str | None = None
    max_turns: int = 50
    api_key: str | None = None
    cancellation: CancellationToken | None = None

    @property
    def filename(self) -> str:
        return self.hunk.filename


@dataclass
class AnalysisResult:
    """Findings and usage for one analyzer call. No findings is a clean result."""

    findings: list[Finding] = field(default_factory=list)
    usage: UsageStats = field(default_factory=UsageStats.empty)


@runtime_checkable
class Analyzer(Protocol):
    """Anything that can analyze a unit of content."""

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult: ...


def build_system_prompt(skill: SkillDefinition) -> str:
    """Build the system prompt for hunk-based analysis."""
    parts = [
        "You are a code analysis agent. You analyze code changes and report "
        "findings in a structured JSON format.",
        "",
        "## Your Analysis Task",
        "",
        skill.prompt,
        "",
        "## Output Format",
        "",
        "Return ONLY a JSON object (no markdown fences, no explanation):",
        "",
        '{"findings": [{"id": "unique-identifier", '
        '"severity": "critical|high|medium|low|info", '
        '"title": "Short descriptive title", '
        '"description": "Detailed explanation of the issue", '
        '"location": {"path": "path/to/file", "start_line": 10, "end_line": 15}, '
        '"suggested_fix": {"description": "How to fix this issue", "diff": "unified diff"}}]}',
        "",
        "Requirements:",
        "- Return ONLY valid JSON",
        '- "findings" can be empty if no issues are found',
        '- "location" is required; use the file path and line numbers from the context',
        '- "suggested_fix" is optional',
        "- Focus only on the changes shown",
    ]

    if skill.root_dir:
        parts.extend([
            "",
            "## Skill Resources",
            "",
            f"This skill is located at: {skill.root_dir}",
            "Files under scripts/, references/ or assets/ may be read with their full path.",
        ])

    return "\n".join(parts)


def build_user_prompt(hunk_ctx: HunkWithContext) -> str:
    """Build the user prompt for a single analysis unit."""
    return "\n".join([
        "Analyze this code change for issues:",
        "",
        format_hunk_for_analysis(hunk_ctx),
        "",
        "Focus only on the changes shown. Report any issues found, "
        "or return an empty findings array if the code looks good.",
    ])


def _extract_json(text: str) -> str | None:
    text = text.strip()
    if text.startswith("{") and text.endswith("}"):
        return text
    match = re.search(r"\{.*\}", text, re.DOTALL)
    return match.group(0) if match else None


def _normalize_keys(raw: dict[str, Any]) -> dict[str, Any]:
    """Accept camelCase keys from engines that emit them."""
    renames = {
        "suggestedFix": "suggested_fix",
        "startLine": "start_line",
        "endLine": "end_line",
        "elapsedMs": "elapsed_ms",
    }
    normalized = {renames.get(k, k): v for k, v in raw.items()}
    for key in ("location", "suggested_fix"):
        if isinstance(normalized.get(key), dict):
            normalized[key] = _normalize_keys(normalized[key])
    return normalized


def parse_findings(text: str, filename: str) -> list[Finding]:
    """
    Parse findings from an analyzer's JSON response.

    Invalid entries are dropped; every location is forced onto ``filename``.
    """
    payload = _extract_json(text)
    if payload is None:
        logger.warning("No JSON found in analyzer output", filename=filename)
        return []

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning(
            "Failed to parse analyzer JSON",
            filename=filename,
            error=str(e),
            preview=payload[:200],
        )
        return []

    raw_findings = parsed.get("findings") if isinstance(parsed, dict) else None
    if not isinstance(raw_findings, list):
        return []

    findings: list[Finding] = []
    for raw in raw_findings:
        if not isinstance(raw, dict):
            continue
        raw = _normalize_keys(raw)
        if isinstance(raw.get("location"), dict):
            raw["location"] = {**raw["location"], "path": filename}
        try:
            findings.append(Finding.model_validate(raw))
        except ValidationError as e:
            logger.debug("Dropping invalid finding", filename=filename, error=str(e))

    return findings


def estimate_tokens(text: str) -> int:
    """Estimate token count for text."""
    return len(text) // CHARS_PER_TOKEN


def estimate_cost_usd(model: str | None, input_tokens: int, output_tokens: int) -> float:
    """Estimate cost in USD from the pricing table."""
    pricing = MODEL_PRICING.get(model or "", DEFAULT_PRICING)
    cents = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
    return cents / 100


class LLMAnalyzer:
    """
    Analyzer backed by a text-generating LLM provider.

    The provider needs a ``generate(prompt)`` or ``complete(prompt)``
    coroutine, or must itself be an async callable.
    """

    def __init__(self, provider: Any, model: str | None = None):
        """
        Initialize the analyzer.

        Args:
            provider: LLM provider used for each call
            model: Model used for cost estimates when the request sets none
        """
        self.provider = provider
        self.model = model

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Analyze one unit; raises AnalysisCancelledError when the token fires."""
        token = request.cancellation
        if token is not None and token.cancelled:
            raise AnalysisCancelledError(f"Cancelled before analyzing {request.filename}")

        prompt = f"{request.system_prompt}\n\n{request.user_prompt}"
        response = await self._call_with_cancellation(prompt, token)

        model = request.model or self.model
        input_tokens = estimate_tokens(prompt)
        output_tokens = estimate_tokens(response)

        return AnalysisResult(
            findings=parse_findings(response, request.filename),
            usage=UsageStats(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost_usd=estimate_cost_usd(model, input_tokens, output_tokens),
            ),
        )

    async def _call_with_cancellation(
        self, prompt: str, token: CancellationToken | None
    ) -> str:
        if token is None:
            return await self._call_llm(prompt)

        call = asyncio.ensure_future(self._call_llm(prompt))
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            waiter.cancel()

        if not call.done():
            call.cancel()
            raise AnalysisCancelledError("Analyzer call abandoned after cancellation")
        return call.result()

    async def _call_llm(self, prompt: str) -> str:
        """Call the LLM provider."""
        if hasattr(self.provider, "generate"):
            return await self.provider.generate(prompt)
        elif hasattr(self.provider, "complete"):
            return await self.provider.complete(prompt)
        elif callable(self.provider):
            return await self.provider(prompt)
        else:
            raise ValueError("LLM provider must have generate() or complete() method")

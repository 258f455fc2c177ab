"""Runtime settings for the skill runner.

Read from ``WARDEN_*`` environment variables with documented defaults.
"""

import logging
import os
from dataclasses import dataclass

import structlog

DEFAULT_CONCURRENCY = 5
DEFAULT_SKILL_CONCURRENCY = 4
DEFAULT_CONTEXT_LINES = 20
DEFAULT_MAX_TURNS = 50


def get_anthropic_api_key() -> str | None:
    """API key from ``WARDEN_ANTHROPIC_API_KEY``, falling back to ``ANTHROPIC_API_KEY``."""
    return os.getenv("WARDEN_ANTHROPIC_API_KEY") or os.getenv("ANTHROPIC_API_KEY")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RunnerSettings:
    """Execution options for the skill runner."""

    # Files analyzed at once; ignored when parallel is False
    concurrency: int = DEFAULT_CONCURRENCY
    parallel: bool = True

    # Skills run at once by run_skills()
    skill_concurrency: int = DEFAULT_SKILL_CONCURRENCY

    # Lines of surrounding file content sent with each hunk
    context_lines: int = DEFAULT_CONTEXT_LINES

    # Analyzer options
    max_turns: int = DEFAULT_MAX_TURNS
    model: str | None = None
    api_key: str | None = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RunnerSettings":
        """Create settings from environment variables."""
        return cls(
            concurrency=int(os.getenv("WARDEN_CONCURRENCY", str(DEFAULT_CONCURRENCY))),
            parallel=_env_bool("WARDEN_PARALLEL", True),
            skill_concurrency=int(
                os.getenv("WARDEN_SKILL_CONCURRENCY", str(DEFAULT_SKILL_CONCURRENCY))
            ),
            context_lines=int(os.getenv("WARDEN_CONTEXT_LINES", str(DEFAULT_CONTEXT_LINES))),
            max_turns=int(os.getenv("WARDEN_MAX_TURNS", str(DEFAULT_MAX_TURNS))),
            model=os.getenv("WARDEN_MODEL") or None,
            api_key=get_anthropic_api_key(),
            log_level=os.getenv("WARDEN_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str | None = None) -> None:
    """
    Configure structlog console output for hosts and scripts.

    Without an explicit level, ``WARDEN_LOG_LEVEL`` decides (default INFO).
    """
    if level is None:
        level = RunnerSettings.from_env().log_level
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )

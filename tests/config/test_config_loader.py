"""
Unit tests for configuration loading, skill resolution and settings.
"""

from pathlib import Path

import pytest
import structlog

from warden.config.loader import (
    ConfigLoadError,
    load_skill_definition,
    load_warden_config,
    resolve_skill,
    resolve_trigger,
)
from warden.config.schema import Trigger
from warden.config.settings import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CONTEXT_LINES,
    RunnerSettings,
    configure_logging,
    get_anthropic_api_key,
)
from warden.diff.models import FileMode
from warden.models import SeverityThreshold


VALID_CONFIG = """
version = 1

[defaults]
model = "claude-sonnet-4-latest"
maxTurns = 20

[defaults.filters]
ignorePaths = ["**/*.md"]

[defaults.output]
failOn = "high"
maxFindings = 10

[defaults.chunking]
filePatterns = [
    { pattern = "migrations/**", mode = "whole-file" },
    { pattern = "**/*.min.js", mode = "per-hunk" },
]

[defaults.chunking.coalesce]
maxGapLines = 10

[[triggers]]
name = "security"
event = "pull_request"
actions = ["opened", "synchronize"]
skill = "security-review"

[triggers.output]
failOn = "critical"

[[triggers]]
name = "nightly"
event = "schedule"
skill = "security-review"

[triggers.filters]
paths = ["src/**"]

[[skills]]
name = "security-review"
description = "Find security issues"
prompt = "Look for injection vulnerabilities."
"""


def write_config(repo: Path, content: str) -> Path:
    path = repo / "warden.toml"
    path.write_text(content)
    return path


# =============================================================================
# UNIT TESTS: load_warden_config()
# =============================================================================

class TestLoadWardenConfig:
    """Tests for reading and validating warden.toml."""

    def test_valid_config(self, tmp_path):
        write_config(tmp_path, VALID_CONFIG)
        config = load_warden_config(tmp_path)

        assert config.version == 1
        assert [t.name for t in config.triggers] == ["security", "nightly"]
        assert config.defaults.output.fail_on is SeverityThreshold.HIGH
        assert config.defaults.max_turns == 20

    def test_chunking_patterns(self, tmp_path):
        write_config(tmp_path, VALID_CONFIG)
        chunking = load_warden_config(tmp_path).defaults.chunking

        assert [p.mode for p in chunking.file_patterns] == [FileMode.WHOLE_FILE, FileMode.PER_HUNK]
        assert chunking.coalesce.max_gap_lines == 10
        assert chunking.coalesce.max_chunk_size == 8000

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError, match="not found"):
            load_warden_config(tmp_path)

    def test_invalid_toml(self, tmp_path):
        write_config(tmp_path, "version = = 1")
        with pytest.raises(ConfigLoadError, match="Failed to parse TOML"):
            load_warden_config(tmp_path)

    def test_wrong_version(self, tmp_path):
        write_config(tmp_path, "version = 2")
        with pytest.raises(ConfigLoadError, match="Invalid configuration"):
            load_warden_config(tmp_path)

    def test_unknown_key_rejected(self, tmp_path):
        write_config(tmp_path, "version = 1\nsurprise = true")
        with pytest.raises(ConfigLoadError, match="surprise"):
            load_warden_config(tmp_path)

    def test_actions_required_for_pull_request(self, tmp_path):
        write_config(tmp_path, """
version = 1

[[triggers]]
name = "pr"
event = "pull_request"
skill = "x"
""")
        with pytest.raises(ConfigLoadError, match="actions is required"):
            load_warden_config(tmp_path)

    def test_schedule_requires_paths(self, tmp_path):
        write_config(tmp_path, """
version = 1

[[triggers]]
name = "nightly"
event = "schedule"
skill = "x"
""")
        with pytest.raises(ConfigLoadError, match="filters.paths is required"):
            load_warden_config(tmp_path)

    def test_invalid_threshold(self, tmp_path):
        write_config(tmp_path, """
version = 1

[defaults.output]
failOn = "severe"
""")
        with pytest.raises(ConfigLoadError):
            load_warden_config(tmp_path)


# =============================================================================
# UNIT TESTS: skills
# =============================================================================

class TestSkills:
    """Tests for skill loading and resolution."""

    def test_inline_skill(self, tmp_path):
        write_config(tmp_path, VALID_CONFIG)
        config = load_warden_config(tmp_path)

        skill = resolve_skill("security-review", config, tmp_path)
        assert skill.prompt == "Look for injection vulnerabilities."

    def test_skill_from_directory(self, tmp_path):
        write_config(tmp_path, "version = 1")
        skills_dir = tmp_path / ".warden" / "skills"
        skills_dir.mkdir(parents=True)
        (skills_dir / "perf.toml").write_text('name = "perf"\nprompt = "Find slow code."\n')

        skill = resolve_skill("perf", load_warden_config(tmp_path), tmp_path)

        assert skill.name == "perf"
        assert skill.root_dir == str(skills_dir)

    def test_unknown_skill(self, tmp_path):
        write_config(tmp_path, "version = 1")
        with pytest.raises(ConfigLoadError, match="Skill not found: ghost"):
            resolve_skill("ghost", load_warden_config(tmp_path), tmp_path)

    def test_invalid_skill_file(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('description = "no name or prompt"\n')
        with pytest.raises(ConfigLoadError, match="Invalid skill definition"):
            load_skill_definition(path)


# =============================================================================
# UNIT TESTS: resolve_trigger()
# =============================================================================

class TestResolveTrigger:
    """Tests for merging defaults into triggers."""

    def test_defaults_applied(self, tmp_path):
        write_config(tmp_path, VALID_CONFIG)
        config = load_warden_config(tmp_path)

        resolved = resolve_trigger(config.triggers[0], config)

        assert resolved.model == "claude-sonnet-4-latest"
        assert resolved.max_turns == 20
        assert resolved.filters.ignore_paths == ["**/*.md"]
        assert resolved.output.max_findings == 10

    def test_trigger_values_win(self, tmp_path):
        write_config(tmp_path, VALID_CONFIG)
        config = load_warden_config(tmp_path)

        resolved = resolve_trigger(config.triggers[0], config)
        assert resolved.output.fail_on is SeverityThreshold.CRITICAL

        nightly = resolve_trigger(config.triggers[1], config)
        assert nightly.filters.paths == ["src/**"]
        assert nightly.filters.ignore_paths == ["**/*.md"]

    def test_no_defaults(self, tmp_path):
        write_config(tmp_path, "version = 1")
        config = load_warden_config(tmp_path)
        trigger = Trigger(name="t", event="issues", actions=["opened"], skill="s")

        resolved = resolve_trigger(trigger, config)

        assert resolved.filters.paths is None
        assert resolved.output.fail_on is None
        assert resolved.model is None


# =============================================================================
# UNIT TESTS: settings
# =============================================================================

class TestRunnerSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("WARDEN_CONCURRENCY", "WARDEN_PARALLEL", "WARDEN_CONTEXT_LINES", "WARDEN_MODEL"):
            monkeypatch.delenv(name, raising=False)

        settings = RunnerSettings.from_env()

        assert settings.concurrency == DEFAULT_CONCURRENCY
        assert settings.context_lines == DEFAULT_CONTEXT_LINES
        assert settings.parallel is True
        assert settings.model is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WARDEN_CONCURRENCY", "2")
        monkeypatch.setenv("WARDEN_PARALLEL", "false")
        monkeypatch.setenv("WARDEN_MODEL", "gpt-4o")
        monkeypatch.setenv("WARDEN_LOG_LEVEL", "debug")

        settings = RunnerSettings.from_env()

        assert settings.concurrency == 2
        assert settings.parallel is False
        assert settings.model == "gpt-4o"
        assert settings.log_level == "DEBUG"

    def test_api_key_precedence(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "generic")
        monkeypatch.delenv("WARDEN_ANTHROPIC_API_KEY", raising=False)
        assert get_anthropic_api_key() == "generic"

        monkeypatch.setenv("WARDEN_ANTHROPIC_API_KEY", "specific")
        assert get_anthropic_api_key() == "specific"

    def test_configure_logging(self):
        configure_logging("debug")
        try:
            structlog.get_logger("warden.test").debug("configured", ok=True)
        finally:
            structlog.reset_defaults()

    def test_configure_logging_from_env(self, monkeypatch, capsys):
        """WARDEN_LOG_LEVEL filters events when no level is passed."""
        monkeypatch.setenv("WARDEN_LOG_LEVEL", "warning")
        configure_logging()
        try:
            log = structlog.get_logger("warden.test")
            log.info("hidden event")
            log.warning("visible event")
        finally:
            structlog.reset_defaults()

        out = capsys.readouterr().out
        assert "visible event" in out
        assert "hidden event" not in out

    def test_skill_concurrency_from_env(self, monkeypatch):
        monkeypatch.setenv("WARDEN_SKILL_CONCURRENCY", "2")
        assert RunnerSettings.from_env().skill_concurrency == 2

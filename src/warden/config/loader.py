"""
Configuration Loader

Loads ``warden.toml`` and skill definitions, and resolves triggers
against the configured defaults.
"""

import tomllib
from pathlib import Path

import structlog
from pydantic import ValidationError

from .schema import (
    OutputConfig,
    PathFilter,
    ResolvedTrigger,
    SkillDefinition,
    Trigger,
    WardenConfig,
)

logger = structlog.get_logger(__name__)

CONFIG_FILENAME = "warden.toml"


class ConfigLoadError(Exception):
    """Configuration could not be read or is invalid."""


def _format_issues(error: ValidationError) -> str:
    return "\n".join(
        f"  - {'.'.join(str(p) for p in issue['loc'])}: {issue['msg']}"
        for issue in error.errors()
    )


def _read_toml(path: Path, what: str) -> dict:
    if not path.exists():
        raise ConfigLoadError(f"{what} not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(f"Failed to read {what.lower()}: {path}") from e

    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigLoadError(f"Failed to parse TOML in {path}: {e}") from e


def load_warden_config(repo_path: str | Path) -> WardenConfig:
    """Load and validate ``warden.toml`` from a repository root."""
    config_path = Path(repo_path) / CONFIG_FILENAME
    raw = _read_toml(config_path, "Configuration file")

    try:
        config = WardenConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid configuration:\n{_format_issues(e)}") from e

    logger.debug("Loaded configuration", path=str(config_path), triggers=len(config.triggers))
    return config


def load_skill_definition(skill_path: str | Path) -> SkillDefinition:
    """Load a skill definition from a TOML file."""
    path = Path(skill_path)
    raw = _read_toml(path, "Skill file")
    raw.setdefault("root_dir", str(path.parent))

    try:
        return SkillDefinition.model_validate(raw)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid skill definition:\n{_format_issues(e)}") from e


def resolve_skill(skill_name: str, config: WardenConfig, repo_path: str | Path) -> SkillDefinition:
    """
    Find a skill by name.

    Inline skills in the config win over ``.warden/skills/<name>.toml``.
    """
    for skill in config.skills or []:
        if skill.name == skill_name:
            return skill

    custom_path = Path(repo_path) / ".warden" / "skills" / f"{skill_name}.toml"
    if custom_path.exists():
        return load_skill_definition(custom_path)

    raise ConfigLoadError(f"Skill not found: {skill_name}")


def resolve_trigger(trigger: Trigger, config: WardenConfig) -> ResolvedTrigger:
    """Merge a trigger with the config defaults; trigger values win."""
    defaults = config.defaults
    default_filters = defaults.filters if defaults and defaults.filters else PathFilter()
    default_output = defaults.output if defaults and defaults.output else OutputConfig()
    filters = trigger.filters or PathFilter()
    output = trigger.output or OutputConfig()

    return ResolvedTrigger(
        **trigger.model_dump(exclude={"filters", "output", "model", "max_turns"}),
        filters=PathFilter(
            paths=filters.paths if filters.paths is not None else default_filters.paths,
            ignore_paths=(
                filters.ignore_paths
                if filters.ignore_paths is not None
                else default_filters.ignore_paths
            ),
        ),
        output=OutputConfig(
            fail_on=output.fail_on or default_output.fail_on,
            comment_on=output.comment_on or default_output.comment_on,
            max_findings=output.max_findings or default_output.max_findings,
            comment_on_success=output.comment_on_success or default_output.comment_on_success,
        ),
        model=trigger.model or (defaults.model if defaults else None),
        max_turns=trigger.max_turns or (defaults.max_turns if defaults else None),
    )

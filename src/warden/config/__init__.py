"""Configuration schema, loading and runtime settings."""

from .loader import (
    ConfigLoadError,
    load_skill_definition,
    load_warden_config,
    resolve_skill,
    resolve_trigger,
)
from .schema import (
    ChunkingConfig,
    CoalesceConfig,
    Defaults,
    FilePattern,
    OutputConfig,
    PathFilter,
    ResolvedTrigger,
    SkillDefinition,
    Trigger,
    WardenConfig,
)
from .settings import RunnerSettings, configure_logging, get_anthropic_api_key

__all__ = [
    "ChunkingConfig",
    "CoalesceConfig",
    "ConfigLoadError",
    "Defaults",
    "FilePattern",
    "OutputConfig",
    "PathFilter",
    "ResolvedTrigger",
    "RunnerSettings",
    "SkillDefinition",
    "Trigger",
    "WardenConfig",
    "configure_logging",
    "get_anthropic_api_key",
    "load_skill_definition",
    "load_warden_config",
    "resolve_skill",
    "resolve_trigger",
]

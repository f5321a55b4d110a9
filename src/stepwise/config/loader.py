"""
Stepwise Configuration Loader.

Loads the packaged stepwise.yaml, deep-merges an optional user file named by
the STEPWISE_CONFIG environment variable on top of it, applies a few
environment overrides and validates the result with Pydantic models.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stepwise.core.errors import StepwiseError
from stepwise.core.step import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "stepwise.yaml"
CONFIG_ENV_VAR = "STEPWISE_CONFIG"

# Environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, tuple] = {
    "STEPWISE_ANSWERER_URL": ("answerer", "base_url"),
    "STEPWISE_ANSWERER_MODEL": ("answerer", "model"),
    "STEPWISE_ANSWERER_API_KEY": ("answerer", "api_key"),
}


class ConfigError(StepwiseError):
    """Raised when a configuration file cannot be read or validated"""

    pass


# =============================================================================
# Section Models
# =============================================================================


class RetryConfig(BaseModel):
    """Retry settings for a collaborator call."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=10.0, ge=0)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
        )


class AnswererConfig(BaseModel):
    """OpenAI-compatible chat completions endpoint."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "http://localhost:11434/v1"
    model: str = "llama3"
    api_key: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=2048, ge=1)
    timeout_seconds: float = Field(default=120.0, gt=0)


class ResearchConfig(BaseModel):
    """arXiv research retrieval."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "http://export.arxiv.org/api/query"
    max_results: int = Field(default=5, ge=1, le=100)
    summary_chars: int = Field(default=150, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    learn_skills: bool = Field(default=True, description="Register an analysis skill per topic")


class LargeInputConfig(BaseModel):
    """Divide-and-conquer processing of large inputs."""

    model_config = ConfigDict(frozen=True)

    threshold_chars: int = Field(default=2000, ge=1)
    chunk_chars: int = Field(default=2000, ge=100)
    max_parallel: int = Field(default=4, ge=1)
    task_prompt: str = "Summarize and extract key points:"


class OrchestratorConfig(BaseModel):
    """Plan-then-execute orchestration."""

    model_config = ConfigDict(frozen=True)

    max_plan_entries: int = Field(default=10, ge=1)
    default_aggregation: Literal["last", "join"] = "last"


class MemoryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    default_key: str = "last"
    default_session: str = "default"

    @field_validator("default_key", "default_session")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


# =============================================================================
# Main Configuration Model
# =============================================================================


class StepwiseConfig(BaseModel):
    """Complete stepwise configuration."""

    model_config = ConfigDict(frozen=True)

    answerer: AnswererConfig = Field(default_factory=AnswererConfig)
    research: ResearchConfig = Field(default_factory=ResearchConfig)
    large_input: LargeInputConfig = Field(default_factory=LargeInputConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> StepwiseConfig:
        """Load a single YAML file (no merging, no environment overrides)."""
        return cls.from_mapping(_read_yaml(Path(path)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> StepwiseConfig:
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigError(f"Invalid stepwise configuration: {e}") from e


# =============================================================================
# Loading
# =============================================================================


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at top level")
    return data


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``"""
    merged: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: Optional[Path | str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> StepwiseConfig:
    """
    Build a configuration from the packaged defaults and overrides.

    Args:
        config_path: User file merged over the defaults. Falls back to the
            STEPWISE_CONFIG environment variable when omitted.
        environ: Environment to read (defaults to os.environ)

    Returns:
        Validated StepwiseConfig

    Raises:
        ConfigError: If a file is missing, malformed or fails validation
    """
    env = os.environ if environ is None else environ
    data = _read_yaml(DEFAULT_CONFIG_PATH)

    user_path = config_path or env.get(CONFIG_ENV_VAR)
    if user_path:
        data = deep_merge(data, _read_yaml(Path(user_path)))
        logger.info(f"Merged stepwise config from {user_path}")

    for var, (section, key) in ENV_OVERRIDES.items():
        if env.get(var):
            data = deep_merge(data, {section: {key: env[var]}})
            logger.debug(f"Config override {section}.{key} from {var}")

    return StepwiseConfig.from_mapping(data)


_cached_config: Optional[StepwiseConfig] = None


def get_config(force_reload: bool = False) -> StepwiseConfig:
    """Process-wide configuration, loaded on first use"""
    global _cached_config

    if _cached_config is None or force_reload:
        _cached_config = load_config()
    return _cached_config


def reset_config() -> None:
    """Drop the cached configuration (tests)"""
    global _cached_config
    _cached_config = None

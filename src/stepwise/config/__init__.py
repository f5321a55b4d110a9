"""Stepwise configuration (packaged YAML defaults + user file + environment)."""

from .loader import (
    AnswererConfig,
    ConfigError,
    LargeInputConfig,
    MemoryConfig,
    OrchestratorConfig,
    ResearchConfig,
    RetryConfig,
    StepwiseConfig,
    deep_merge,
    get_config,
    load_config,
    reset_config,
)

__all__ = [
    "AnswererConfig",
    "ConfigError",
    "LargeInputConfig",
    "MemoryConfig",
    "OrchestratorConfig",
    "ResearchConfig",
    "RetryConfig",
    "StepwiseConfig",
    "deep_merge",
    "get_config",
    "load_config",
    "reset_config",
]

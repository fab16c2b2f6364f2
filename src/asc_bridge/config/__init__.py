"""
asc-bridge config package public API.

Purpose
- Export the project layout model, its validator, config loading, and public error types.

Functional requirements
- Support loading from ``asc-bridge.toml`` + ``ASC_BRIDGE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from asc_bridge.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    harness_settings,
    load_config,
    project_config,
)
from asc_bridge.config.project import (
    OPTION_ALIASES,
    ConfigError,
    ConfigErrorKind,
    ProjectConfig,
    canonical_option_keys,
    validate_layout,
)
from asc_bridge.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    HarnessSettings,
    RetryPolicy,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "ConfigError",
    "ConfigErrorKind",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "HarnessSettings",
    "OPTION_ALIASES",
    "ProjectConfig",
    "RetryPolicy",
    "assert_valid_config",
    "canonical_option_keys",
    "default_config",
    "dump_effective_config",
    "harness_settings",
    "load_config",
    "merge_config",
    "project_config",
    "validate_config",
    "validate_layout",
]

"""
asc-bridge — configuration schema.

Purpose
- Define the ``asc-bridge.toml`` shape: ``[project]``, ``[harness]``, ``[logging]``.
- Provide deterministic defaults, deep merge, and strict validation with structured issues.

Functional requirements
- Unknown tables/keys are rejected.
- Validation returns a normalized copy; inputs are never mutated.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final, TypedDict

from asc_bridge.config.project import OPTION_ALIASES, ProjectConfig
from asc_bridge.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_BUILD_COMMAND,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_READY_TIMEOUT_SECONDS,
    DEFAULT_SERVE_COMMAND,
)

_LOG_LEVELS: Final[tuple[str, ...]] = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")


class RetryPolicy(StrEnum):
    """How the retry supervisor treats non-transport failures on non-final attempts."""

    LENIENT = "lenient"
    STRICT = "strict"


class ProjectSection(TypedDict, total=False):
    source_root: str
    entry_file: str
    config_file: str
    watch_subpath: str
    output_artifact: str
    dist_root: str
    tool_bin_dir: str
    compiler_bin: str


class HarnessSection(TypedDict):
    max_attempts: int
    backoff_seconds: float
    ready_timeout_seconds: float
    retry_policy: str
    build_command: list[str]
    serve_command: list[str]


class LoggingSection(TypedDict):
    level: str
    log_dir: str
    log_to_stdout: bool


class AscBridgeConfig(TypedDict):
    project: ProjectSection
    harness: HarnessSection
    logging: LoggingSection


DEFAULT_CONFIG: Final[AscBridgeConfig] = {
    "project": ProjectConfig().to_dict(),  # type: ignore[typeddict-item]
    "harness": {
        "max_attempts": DEFAULT_MAX_ATTEMPTS,
        "backoff_seconds": DEFAULT_BACKOFF_SECONDS,
        "ready_timeout_seconds": DEFAULT_READY_TIMEOUT_SECONDS,
        "retry_policy": RetryPolicy.LENIENT.value,
        "build_command": list(DEFAULT_BUILD_COMMAND),
        "serve_command": list(DEFAULT_SERVE_COMMAND),
    },
    "logging": {
        "level": "INFO",
        "log_dir": ".asc-bridge/logs",
        "log_to_stdout": True,
    },
}

PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("logging", "log_dir"),)


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


@dataclass(frozen=True, slots=True)
class HarnessSettings:
    """Typed view over the ``[harness]`` table."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS
    ready_timeout_seconds: float = DEFAULT_READY_TIMEOUT_SECONDS
    retry_policy: RetryPolicy = RetryPolicy.LENIENT
    build_command: tuple[str, ...] = DEFAULT_BUILD_COMMAND
    serve_command: tuple[str, ...] = DEFAULT_SERVE_COMMAND

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> HarnessSettings:
        section = config.get("harness", {})
        return cls(
            max_attempts=int(section["max_attempts"]),
            backoff_seconds=float(section["backoff_seconds"]),
            ready_timeout_seconds=float(section["ready_timeout_seconds"]),
            retry_policy=RetryPolicy(section["retry_policy"]),
            build_command=tuple(section["build_command"]),
            serve_command=tuple(section["serve_command"]),
        )


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)


def default_config() -> dict[str, Any]:
    """Return a deep copy of the built-in defaults."""

    return merge_config({}, DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> tuple[ConfigValidationIssue, ...]:
    """Return structured issues for ``config``; an empty tuple means valid."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return issues.items()

    _reject_unknown_keys(config, {"project", "harness", "logging"}, "", issues)

    project = _as_object(config.get("project", {}), "project", issues)
    if project is not None:
        allowed = set(ProjectConfig().to_dict()) | set(OPTION_ALIASES)
        _reject_unknown_keys(project, allowed, "project", issues)
        for key in sorted(project):
            if key in allowed:
                _as_str(project[key], f"project.{key}", issues)

    harness = _as_object(config.get("harness", {}), "harness", issues)
    if harness is not None:
        _reject_unknown_keys(
            harness,
            set(DEFAULT_CONFIG["harness"]),
            "harness",
            issues,
        )
        _require_keys(harness, set(DEFAULT_CONFIG["harness"]), "harness", issues)
        if "max_attempts" in harness:
            _as_int(harness["max_attempts"], "harness.max_attempts", issues, minimum=1)
        for key in ("backoff_seconds", "ready_timeout_seconds"):
            if key in harness:
                _as_float(harness[key], f"harness.{key}", issues, minimum=0.0)
        if "retry_policy" in harness:
            _as_enum(
                harness["retry_policy"],
                "harness.retry_policy",
                issues,
                allowed_values=tuple(item.value for item in RetryPolicy),
            )
        for key in ("build_command", "serve_command"):
            if key in harness:
                _as_command(harness[key], f"harness.{key}", issues)

    logging_section = _as_object(config.get("logging", {}), "logging", issues)
    if logging_section is not None:
        _reject_unknown_keys(logging_section, set(DEFAULT_CONFIG["logging"]), "logging", issues)
        _require_keys(logging_section, set(DEFAULT_CONFIG["logging"]), "logging", issues)
        if "level" in logging_section:
            level = logging_section["level"]
            _as_enum(
                level.upper() if isinstance(level, str) else level,
                "logging.level",
                issues,
                allowed_values=_LOG_LEVELS,
            )
        if "log_dir" in logging_section:
            _as_str(logging_section["log_dir"], "logging.log_dir", issues)
        if "log_to_stdout" in logging_section:
            _as_bool(logging_section["log_to_stdout"], "logging.log_to_stdout", issues)

    return issues.items()


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    issues = validate_config(config)
    if issues:
        raise ConfigValidationError(issues)
    assert isinstance(config, Mapping)
    return merge_config({}, config)


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_command(value: object, path: str, issues: _IssueCollector) -> None:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return
    if not value:
        issues.add(path, "must not be empty")
        return
    for index, item in enumerate(value):
        _as_str(item, f"{path}[{index}]", issues)


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return _deep_copy_mapping(value)
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return value


__all__ = [
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "AscBridgeConfig",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "HarnessSettings",
    "RetryPolicy",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]

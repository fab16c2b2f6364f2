"""
asc-bridge — project layout model and validator.

Purpose
- Immutable ``ProjectConfig`` built once from user overrides merged onto defaults.
- Eager layout validation so configuration errors surface before any compiler spawns.

Functional requirements
- Every path is resolved relative to ``source_root`` except ``dist_root``.
- Error messages print option values exactly as supplied by the user.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import StrEnum
from pathlib import Path, PurePath
from typing import Final

from asc_bridge.constants import (
    DEFAULT_COMPILER_BIN,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DIST_ROOT,
    DEFAULT_ENTRY_FILE,
    DEFAULT_OUTPUT_ARTIFACT,
    DEFAULT_SOURCE_ROOT,
    DEFAULT_TOOL_BIN_DIR,
    DEFAULT_WATCH_SUBPATH,
    PLUGIN_TAG,
    SOURCE_MAP_SUFFIX,
)

# Original plugin option names, accepted as override aliases.
OPTION_ALIASES: Final[dict[str, str]] = {
    "projectRoot": "source_root",
    "srcEntryFile": "entry_file",
    "configFile": "config_file",
    "srcMatch": "watch_subpath",
    "targetWasmFile": "output_artifact",
    "distFolder": "dist_root",
}

_DISPLAY_NAMES: Final[dict[str, str]] = {value: key for key, value in OPTION_ALIASES.items()}


class ConfigErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    NOT_A_DIRECTORY = "not_a_directory"
    ENTRY_MISSING = "entry_missing"
    INVALID_OPTION = "invalid_option"


class ConfigError(ValueError):
    """Fatal project layout/configuration error raised at setup time."""

    def __init__(self, kind: ConfigErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """Resolved compile bridge options. Paths are kept as user-supplied text."""

    source_root: str = DEFAULT_SOURCE_ROOT
    entry_file: str = DEFAULT_ENTRY_FILE
    config_file: str = DEFAULT_CONFIG_FILE
    watch_subpath: str = DEFAULT_WATCH_SUBPATH
    output_artifact: str = DEFAULT_OUTPUT_ARTIFACT
    dist_root: str = DEFAULT_DIST_ROOT
    tool_bin_dir: str = DEFAULT_TOOL_BIN_DIR
    compiler_bin: str = DEFAULT_COMPILER_BIN

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(
                    ConfigErrorKind.INVALID_OPTION,
                    f"{PLUGIN_TAG} {_display_name(item.name)}: must be a non-empty string",
                )

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, object] | None = None) -> ProjectConfig:
        """Merge ``overrides`` (snake_case or original camelCase keys) onto defaults."""

        known = {item.name for item in fields(cls)}
        values: dict[str, str] = {}
        for key in sorted(overrides or {}):
            raw = (overrides or {})[key]
            name = OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(
                    ConfigErrorKind.INVALID_OPTION,
                    f"{PLUGIN_TAG} unknown option: {key}",
                )
            if raw is None:
                continue
            if isinstance(raw, PurePath):
                raw = str(raw)
            if not isinstance(raw, str):
                raise ConfigError(
                    ConfigErrorKind.INVALID_OPTION,
                    f"{PLUGIN_TAG} {_display_name(name)}: must be a string",
                )
            values[name] = raw
        return cls(**values)

    @property
    def root_path(self) -> Path:
        return Path(self.source_root)

    @property
    def entry_path(self) -> Path:
        return self.root_path / self.entry_file

    @property
    def config_path(self) -> Path:
        return self.root_path / self.config_file

    @property
    def watch_path(self) -> Path:
        return self.root_path / self.watch_subpath

    @property
    def compiler_path(self) -> Path:
        return self.root_path / self.tool_bin_dir / self.compiler_bin

    @property
    def artifact_path(self) -> Path:
        return self.root_path / self.output_artifact

    @property
    def source_map_path(self) -> Path:
        return self.root_path / f"{self.output_artifact}{SOURCE_MAP_SUFFIX}"

    @property
    def dist_source_map_path(self) -> Path:
        """Where the source map lands under ``dist_root``, mirroring the source layout."""

        root = PurePath(self.source_root)
        relative_root = PurePath(*root.parts[1:]) if root.is_absolute() else root
        return Path(self.dist_root) / relative_root / f"{self.output_artifact}{SOURCE_MAP_SUFFIX}"

    def to_dict(self) -> dict[str, str]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


def canonical_option_keys(options: Mapping[str, object]) -> dict[str, object]:
    """Rename original camelCase option keys to field names; other keys pass through."""

    renamed: dict[str, object] = {}
    for key in sorted(options):
        renamed[OPTION_ALIASES.get(key, key)] = options[key]
    return renamed


def validate_layout(config: ProjectConfig) -> ProjectConfig:
    """Check source root existence, its kind, and the entry file. Stat calls only."""

    root = config.root_path
    if not root.exists():
        raise ConfigError(
            ConfigErrorKind.NOT_FOUND,
            f"{PLUGIN_TAG} projectRoot: {config.source_root} does not exist",
        )
    if not root.is_dir():
        raise ConfigError(
            ConfigErrorKind.NOT_A_DIRECTORY,
            f"{PLUGIN_TAG} projectRoot: {config.source_root} is not a folder",
        )
    if not config.entry_path.exists():
        raise ConfigError(
            ConfigErrorKind.ENTRY_MISSING,
            f"{PLUGIN_TAG} srcEntryFile: {config.entry_file} does not exist",
        )
    return config


def _display_name(field_name: str) -> str:
    return _DISPLAY_NAMES.get(field_name, field_name)


__all__ = [
    "OPTION_ALIASES",
    "ConfigError",
    "ConfigErrorKind",
    "ProjectConfig",
    "canonical_option_keys",
    "validate_layout",
]

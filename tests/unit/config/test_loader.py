"""
asc-bridge — unit tests for config loader

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Env var path mapping and type coercion.
- Original option names in the ``[project]`` table.
- Path normalization relative to the config file.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from asc_bridge.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    harness_settings,
    load_config,
    project_config,
)
from asc_bridge.config.schema import ConfigValidationError, RetryPolicy


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.unit
def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "asc-bridge.toml",
        """
[harness]
max_attempts = 4
""".strip(),
    )
    empty_path = _write_config(tmp_path / "empty.toml", "")

    default_loaded = load_config(empty_path, environ={})
    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ={"ASC_BRIDGE_HARNESS_MAX_ATTEMPTS": "6"})
    cli_loaded = load_config(
        config_path,
        environ={"ASC_BRIDGE_HARNESS_MAX_ATTEMPTS": "6"},
        cli_overrides={"harness.max_attempts": 7},
    )

    assert default_loaded["harness"]["max_attempts"] == 10
    assert file_loaded["harness"]["max_attempts"] == 4
    assert env_loaded["harness"]["max_attempts"] == 6
    assert cli_loaded["harness"]["max_attempts"] == 7


@pytest.mark.unit
def test_project_table_accepts_original_option_names(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "asc-bridge.toml",
        """
[project]
projectRoot = "e2e/src/as"
srcMatch = "as"
""".strip(),
    )

    loaded = load_config(config_path, environ={})
    project = project_config(loaded)

    assert project.source_root == "e2e/src/as"
    assert project.watch_subpath == "as"
    assert "projectRoot" not in loaded["project"]


@pytest.mark.unit
def test_bare_cli_keys_address_the_project_table(tmp_path: Path) -> None:
    loaded = load_config(
        _write_config(tmp_path / "asc-bridge.toml", ""),
        environ={},
        cli_overrides={"projectRoot": "foobar"},
    )

    assert project_config(loaded).source_root == "foobar"


@pytest.mark.unit
def test_env_coercion_for_each_value_kind(tmp_path: Path) -> None:
    loaded = load_config(
        _write_config(tmp_path / "asc-bridge.toml", ""),
        environ={
            "ASC_BRIDGE_HARNESS_BACKOFF_SECONDS": "0.5",
            "ASC_BRIDGE_HARNESS_RETRY_POLICY": "strict",
            "ASC_BRIDGE_HARNESS_BUILD_COMMAND": '["vite", "build", "--outDir", "{out_dir}"]',
            "ASC_BRIDGE_HARNESS_SERVE_COMMAND": "vite --port {port}",
            "ASC_BRIDGE_LOGGING_LOG_TO_STDOUT": "off",
            "ASC_BRIDGE_PROJECT_SOURCE_ROOT": "engine",
        },
    )
    settings = harness_settings(loaded)

    assert settings.backoff_seconds == 0.5
    assert settings.retry_policy is RetryPolicy.STRICT
    assert settings.build_command == ("vite", "build", "--outDir", "{out_dir}")
    assert settings.serve_command == ("vite", "--port", "{port}")
    assert loaded["logging"]["log_to_stdout"] is False
    assert loaded["project"]["source_root"] == "engine"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("env_name", "raw"),
    [
        ("ASC_BRIDGE_HARNESS_MAX_ATTEMPTS", "ten"),
        ("ASC_BRIDGE_HARNESS_READY_TIMEOUT_SECONDS", "soon"),
        ("ASC_BRIDGE_LOGGING_LOG_TO_STDOUT", "maybe"),
        ("ASC_BRIDGE_HARNESS_BUILD_COMMAND", "[not json"),
    ],
)
def test_invalid_env_values_raise_load_error(tmp_path: Path, env_name: str, raw: str) -> None:
    with pytest.raises(ConfigLoadError, match=env_name):
        load_config(_write_config(tmp_path / "asc-bridge.toml", ""), environ={env_name: raw})


@pytest.mark.unit
def test_explicit_missing_file_and_invalid_toml_raise(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="not found"):
        load_config(tmp_path / "missing.toml", environ={})

    broken = _write_config(tmp_path / "broken.toml", "[harness\nmax_attempts = ")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})


@pytest.mark.unit
def test_schema_violations_in_file_raise_validation_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "asc-bridge.toml", "[harness]\nmax_attempts = 0\n")

    with pytest.raises(ConfigValidationError, match="harness.max_attempts"):
        load_config(config_path, environ={})


@pytest.mark.unit
def test_log_dir_is_normalized_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "conf" / "asc-bridge.toml",
        '[logging]\nlog_dir = "../logs"\n',
    )

    loaded = load_config(config_path, environ={})

    assert loaded["logging"]["log_dir"] == (tmp_path.resolve() / "logs").as_posix()


@pytest.mark.unit
def test_dump_effective_config_is_deterministic_json(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "asc-bridge.toml", "")

    first = dump_effective_config(load_config(config_path, environ={}))
    second = dump_effective_config(load_config(config_path, environ={}))

    assert first == second
    assert json.loads(first)["harness"]["retry_policy"] == "lenient"

"""
asc-bridge — unit tests for the CLI router

Purpose
- Validate argument parsing, ``--set`` decoding, and in-process command handlers
  against the fake compiler.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from asc_bridge.config import ConfigError
from asc_bridge.main import cli_entrypoint
from asc_bridge.ui.cli import CLIError, build_parser, parse_overrides, run_cli

if TYPE_CHECKING:
    from tests.conftest import FakeProject


def _config_file(project: FakeProject, tmp_path: Path) -> Path:
    path = tmp_path / "asc-bridge.toml"
    path.write_text(
        "\n".join(
            [
                "[project]",
                f'projectRoot = "{project.config.source_root}"',
                f'dist_root = "{project.config.dist_root}"',
                "[logging]",
                f'log_dir = "{(tmp_path / "logs").as_posix()}"',
                "log_to_stdout = false",
            ]
        ),
        encoding="utf-8",
    )
    return path


@pytest.mark.unit
def test_parser_defaults_for_verify() -> None:
    args = build_parser().parse_args(["verify"])

    assert args.strategy == "static"
    assert args.legacy is False
    assert args.max_attempts is None
    assert args.overrides == []


@pytest.mark.unit
def test_parser_rejects_unknown_strategy() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["verify", "--strategy", "hot"])


@pytest.mark.unit
def test_parse_overrides_decodes_json_values() -> None:
    assert parse_overrides(["harness.max_attempts=3", "projectRoot=src/as", "flag=true"]) == {
        "harness.max_attempts": 3,
        "projectRoot": "src/as",
        "flag": True,
    }


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["novalue", "=3"])
def test_parse_overrides_rejects_malformed_items(raw: str) -> None:
    with pytest.raises(CLIError):
        parse_overrides([raw])


@pytest.mark.unit
def test_build_command_compiles_release(
    fake_project: FakeProject,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    fake_project.emit_source_map()
    config_path = _config_file(fake_project, tmp_path)

    exit_code = run_cli(["build", "--config", str(config_path)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "OK  release compile" in out
    assert "assembly.wasm.map" in out
    assert fake_project.invocations()[0].startswith("release ")


@pytest.mark.unit
def test_build_command_failure_maps_to_compile_exit_code(
    fake_project: FakeProject,
    tmp_path: Path,
) -> None:
    fake_project.fail_next()

    assert cli_entrypoint(["build", "--config", str(_config_file(fake_project, tmp_path))]) == 3


@pytest.mark.unit
def test_missing_project_root_maps_to_config_exit_code(
    fake_project: FakeProject,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    config_path = _config_file(fake_project, tmp_path)

    exit_code = cli_entrypoint(
        ["build", "--config", str(config_path), "--set", f"projectRoot={tmp_path / 'foobar'}"]
    )

    assert exit_code == 2
    assert "foobar" in capsys.readouterr().err
    assert fake_project.invocations() == []


@pytest.mark.unit
def test_config_command_prints_effective_json(
    fake_project: FakeProject,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    config_path = _config_file(fake_project, tmp_path)

    assert run_cli(["config", "--config", str(config_path), "--set", "harness.max_attempts=2"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["harness"]["max_attempts"] == 2
    assert payload["project"]["source_root"] == fake_project.config.source_root


@pytest.mark.unit
def test_verify_rejects_non_positive_attempts(fake_project: FakeProject, tmp_path: Path) -> None:
    config_path = _config_file(fake_project, tmp_path)

    assert run_cli(["verify", "--config", str(config_path), "--max-attempts", "0"]) == 2


@pytest.mark.unit
def test_config_error_is_not_swallowed_by_router(fake_project: FakeProject, tmp_path: Path) -> None:
    config_path = _config_file(fake_project, tmp_path)

    with pytest.raises(ConfigError):
        run_cli(["build", "--config", str(config_path), "--set", "srcEntryFile=missing.ts"])

"""
asc-bridge — integration tests for the installed CLI surface

Purpose
- Run ``python -m asc_bridge`` as a subprocess and check exit codes and output.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from tests.conftest import FakeProject

SRC_ROOT = Path(__file__).resolve().parents[2] / "src"


def _run(args: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_ROOT), env.get("PYTHONPATH")]))
    env["ASC_BRIDGE_LOGGING_LOG_TO_STDOUT"] = "false"
    env["ASC_BRIDGE_LOGGING_LOG_DIR"] = str(cwd / "logs")
    return subprocess.run(
        [sys.executable, "-m", "asc_bridge", *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
        check=False,
    )


def _write_config(project: FakeProject, directory: Path) -> Path:
    path = directory / "asc-bridge.toml"
    path.write_text(
        f'[project]\nprojectRoot = "{project.config.source_root}"\n'
        f'dist_root = "{project.config.dist_root}"\n',
        encoding="utf-8",
    )
    return path


@pytest.mark.integration
def test_build_succeeds_with_discovered_config(fake_project: FakeProject, tmp_path: Path) -> None:
    _write_config(fake_project, tmp_path)

    result = _run(["build"], tmp_path)

    assert result.returncode == 0, result.stderr
    assert "release compile" in result.stdout
    assert fake_project.artifact.exists()


@pytest.mark.integration
def test_build_reports_compiler_failure(fake_project: FakeProject, tmp_path: Path) -> None:
    _write_config(fake_project, tmp_path)
    fake_project.fail_next(exit_code=4)

    result = _run(["build"], tmp_path)

    assert result.returncode == 3
    assert "ERROR AS024" in result.stderr
    assert "[AssemblyScript] release compile exited with code 4" in result.stderr


@pytest.mark.integration
def test_missing_project_root_exits_with_config_error(tmp_path: Path) -> None:
    result = _run(["build", "--set", "projectRoot=foobar"], tmp_path)

    assert result.returncode == 2
    assert "[vite-plugin-assemblyscript] projectRoot: foobar does not exist" in result.stderr


@pytest.mark.integration
def test_config_command_reflects_environment(fake_project: FakeProject, tmp_path: Path) -> None:
    _write_config(fake_project, tmp_path)

    result = _run(["config"], tmp_path)

    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["logging"]["log_to_stdout"] is False
    assert payload["project"]["source_root"] == fake_project.config.source_root

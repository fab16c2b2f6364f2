"""
asc-bridge — unit tests for exit-code routing at the CLI boundary
"""

from __future__ import annotations

import pytest

from asc_bridge.bridge.compiler import CompileError, CompileMode
from asc_bridge.config import ConfigError, ConfigErrorKind, ConfigLoadError
from asc_bridge.harness.errors import ProvisionError
from asc_bridge.harness.session import Failure, FailureCause, VerificationFailure
from asc_bridge.main import ExitCode, cli_entrypoint, route_exception


def _chained(outer: Exception, inner: Exception) -> Exception:
    try:
        try:
            raise inner
        except Exception as exc:
            raise outer from exc
    except Exception as caught:
        return caught


@pytest.mark.unit
@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (VerificationFailure(Failure(FailureCause.CRASH, "page crashed")), ExitCode.VERIFICATION_FAILED),
        (ConfigError(ConfigErrorKind.NOT_FOUND, "missing"), ExitCode.CONFIG_ERROR),
        (ConfigLoadError("invalid TOML"), ExitCode.CONFIG_ERROR),
        (
            CompileError(mode=CompileMode.RELEASE, exit_code=1, stderr_tail="", command_line="asc"),
            ExitCode.COMPILE_ERROR,
        ),
        (ProvisionError("bind failed"), ExitCode.PROVISION_ERROR),
        (RuntimeError("unexpected"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_route_exception(exc: Exception, expected: ExitCode) -> None:
    assert route_exception(exc) is expected


@pytest.mark.unit
def test_route_exception_follows_cause_chain() -> None:
    exc = _chained(RuntimeError("wrapped"), ProvisionError("port in use"))

    assert route_exception(exc) is ExitCode.PROVISION_ERROR


@pytest.mark.unit
def test_cli_entrypoint_normalizes_usage_errors(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["no-such-command"]) == 2
    assert "usage" in capsys.readouterr().err


@pytest.mark.unit
def test_cli_entrypoint_help_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["--help"]) == 0
    assert "verify" in capsys.readouterr().out


@pytest.mark.unit
def test_cli_entrypoint_reports_interrupt_as_failure(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    def interrupted(argv: object) -> int:
        raise KeyboardInterrupt

    monkeypatch.setattr("asc_bridge.ui.cli.run_cli", interrupted)

    assert cli_entrypoint(["verify"]) == ExitCode.INTERRUPTED == 130
    assert "interrupted" in capsys.readouterr().err

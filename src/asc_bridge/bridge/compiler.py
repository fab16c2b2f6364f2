"""
Compiler Invoker — runs the external AssemblyScript compiler.

Functional requirements:
- Builds ``<root>/<tool_bin_dir>/<compiler_bin> <entry> --config <config> --target <mode>``.
- Blocks until the child exits; the child inherits environment and working directory.
- Child stdout goes straight to the caller's console; stderr is relayed line by line
  while the most recent lines are kept for the error report.
- Failures are returned, never raised; the caller decides whether they are fatal.

Non-functional requirements:
- Wall-clock duration is measured and logged for every invocation.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import IO, TYPE_CHECKING, Final

import structlog

from asc_bridge.utils.fs import copy_if_exists

if TYPE_CHECKING:
    from pathlib import Path

    from asc_bridge.config.project import ProjectConfig

_STDERR_TAIL_LINES: Final[int] = 20

logger = structlog.get_logger(__name__)


class CompileMode(StrEnum):
    """``debug`` for incremental rebuilds, ``release`` for full builds."""

    DEBUG = "debug"
    RELEASE = "release"


class CompileError(RuntimeError):
    """Non-zero compiler exit or spawn failure."""

    def __init__(
        self,
        *,
        mode: CompileMode,
        exit_code: int | None,
        stderr_tail: str,
        command_line: str,
    ) -> None:
        self.mode = mode
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        self.command_line = command_line
        if exit_code is None:
            detail = f"failed to start: {stderr_tail}" if stderr_tail else "failed to start"
        else:
            detail = f"exited with code {exit_code}"
        super().__init__(f"[AssemblyScript] {mode.value} compile {detail}")


@dataclass(frozen=True, slots=True)
class CompileInvocation:
    """Fully resolved compiler command, derived from config + mode."""

    mode: CompileMode
    argv: tuple[str, ...]

    @classmethod
    def for_config(cls, config: ProjectConfig, mode: CompileMode) -> CompileInvocation:
        return cls(
            mode=mode,
            argv=(
                str(config.compiler_path),
                str(config.entry_path),
                "--config",
                str(config.config_path),
                "--target",
                mode.value,
            ),
        )

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True, slots=True)
class CompileOutcome:
    """Result of one invocation. ``error`` is set exactly when the compile failed."""

    invocation: CompileInvocation
    duration_ms: int
    error: CompileError | None = None
    source_map: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> CompileOutcome:
        if self.error is not None:
            raise self.error
        return self


def invoke(config: ProjectConfig, mode: CompileMode) -> CompileOutcome:
    """Run the compiler synchronously and report success/failure and timing."""

    invocation = CompileInvocation.for_config(config, mode)
    logger.info("asc_compile_started", mode=mode.value, command=invocation.command_line)

    started = time.perf_counter()
    exit_code, stderr_tail = _run_streaming(invocation.argv)
    duration_ms = int(round((time.perf_counter() - started) * 1000.0))

    error: CompileError | None = None
    if exit_code != 0:
        error = CompileError(
            mode=mode,
            exit_code=exit_code,
            stderr_tail=stderr_tail,
            command_line=invocation.command_line,
        )
        logger.warning(
            "asc_compile_failed",
            mode=mode.value,
            exit_code=exit_code,
            duration_ms=duration_ms,
        )
    else:
        logger.info("asc_compile_finished", mode=mode.value, duration_ms=duration_ms)

    return CompileOutcome(invocation=invocation, duration_ms=duration_ms, error=error)


def copy_source_map(config: ProjectConfig) -> Path | None:
    """Mirror ``<root>/<artifact>.map`` under ``dist_root``; absent maps are skipped."""

    copied = copy_if_exists(config.source_map_path, config.dist_source_map_path)
    if copied is not None:
        logger.debug("asc_source_map_copied", target=str(copied))
    return copied


def _run_streaming(argv: tuple[str, ...]) -> tuple[int | None, str]:
    tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)
    try:
        process = subprocess.Popen(
            list(argv),
            cwd=os.getcwd(),
            env=os.environ.copy(),
            stdout=None,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        return None, str(exc)

    assert process.stderr is not None
    relay = threading.Thread(
        target=_relay_stderr,
        args=(process.stderr, tail),
        name="asc-stderr-relay",
        daemon=True,
    )
    relay.start()
    exit_code = process.wait()
    relay.join()
    return exit_code, "".join(tail).rstrip("\n")


def _relay_stderr(stream: IO[bytes], tail: deque[str]) -> None:
    sink = sys.stderr
    with stream:
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace")
            tail.append(line)
            sink.write(line)
            sink.flush()


__all__ = [
    "CompileError",
    "CompileInvocation",
    "CompileMode",
    "CompileOutcome",
    "copy_source_map",
    "invoke",
]

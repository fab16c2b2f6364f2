"""Output rendering for the asc-bridge CLI.

Purpose
- Provide a thin plain-text rendering layer for command results.

Functional requirements
- Output is deterministic and line oriented so it stays readable in CI logs.
- Diagnostics go to stderr; results go to stdout.
"""

from __future__ import annotations

import sys


class CLIRenderer:
    """Thin CLI output renderer."""

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        print(line)

    def detail(self, key: str, value: object) -> None:
        """Print a key: value pair only in verbose mode."""

        if self.verbose:
            self.kv(key, value)

    def ok(self, label: str) -> None:
        """Print a passing check."""

        print(f"  OK  {label}")

    def fail(self, label: str) -> None:
        """Print a failing check."""

        print(f"  FAIL  {label}", file=sys.stderr)


def create_renderer(*, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]

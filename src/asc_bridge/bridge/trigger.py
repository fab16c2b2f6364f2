"""
Rebuild Trigger — maps file-change notifications onto debug compiles.

A change whose path lies under ``<source_root>/<watch_subpath>`` starts a debug
invocation followed by the source-map copy. Changes arriving while a compile is in
flight are neither queued nor coalesced: each starts its own independent compile and
the last writer wins on the produced artifact.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from asc_bridge.bridge.compiler import CompileMode, CompileOutcome, copy_source_map, invoke
from asc_bridge.utils.fs import is_within

if TYPE_CHECKING:
    from asc_bridge.config.project import ProjectConfig

Invoker = Callable[["ProjectConfig", CompileMode], CompileOutcome]

logger = structlog.get_logger(__name__)


class TriggerState(StrEnum):
    IDLE = "idle"
    COMPILING = "compiling"


class RebuildTrigger:
    """Cooperative matcher that schedules a debug compile for watched changes."""

    def __init__(self, config: ProjectConfig, *, invoker: Invoker = invoke) -> None:
        self._config = config
        self._invoker = invoker
        self._watch_root = config.watch_path.resolve()
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def state(self) -> TriggerState:
        with self._lock:
            return TriggerState.COMPILING if self._in_flight else TriggerState.IDLE

    @property
    def watch_root(self) -> Path:
        return self._watch_root

    def matches(self, path: str | os.PathLike[str]) -> bool:
        """True when ``path`` (absolute or relative to the cwd) is under the watched subtree."""

        return is_within(path, self._watch_root)

    def handle_change(self, path: str | os.PathLike[str]) -> CompileOutcome | None:
        """Run a debug compile for a watched change; ignore anything else."""

        if not self.matches(path):
            return None

        with self._lock:
            self._in_flight += 1
        try:
            logger.info("asc_rebuild_triggered", path=str(path))
            outcome = self._invoker(self._config, CompileMode.DEBUG)
            if outcome.ok:
                copied = copy_source_map(self._config)
                if copied is not None:
                    outcome = CompileOutcome(
                        invocation=outcome.invocation,
                        duration_ms=outcome.duration_ms,
                        source_map=copied,
                    )
            return outcome
        finally:
            with self._lock:
                self._in_flight -= 1


__all__ = ["Invoker", "RebuildTrigger", "TriggerState"]

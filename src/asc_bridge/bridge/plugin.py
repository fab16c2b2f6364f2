"""
Compile Bridge — the plugin surface a host build tool drives.

The bridge subscribes to exactly two host lifecycle events:

- ``on_build_start()``: release compile plus source-map copy. A failed release
  compile raises ``CompileError`` and aborts the host build.
- ``on_file_changed(path)``: delegated to the rebuild trigger. A failed debug compile
  is logged and returned; the dev loop keeps running.

Layout validation happens in the constructor, so a misconfigured project fails
before any compiler process is spawned.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import structlog

from asc_bridge.bridge.compiler import (
    CompileInvocation,
    CompileMode,
    CompileOutcome,
    copy_source_map,
    invoke,
)
from asc_bridge.bridge.trigger import Invoker, RebuildTrigger, TriggerState
from asc_bridge.config.project import ProjectConfig, validate_layout
from asc_bridge.constants import PLUGIN_NAME

logger = structlog.get_logger(__name__)


@runtime_checkable
class HostPlugin(Protocol):
    """Lifecycle hooks a host build tool calls on its plugins."""

    name: str

    def on_build_start(self) -> object: ...

    def on_file_changed(self, path: str | os.PathLike[str]) -> object: ...


class CompileBridge:
    """Host plugin that keeps the compiled WebAssembly artifact in sync with its sources."""

    name = PLUGIN_NAME

    def __init__(self, config: ProjectConfig, *, invoker: Invoker = invoke) -> None:
        self.config = validate_layout(config)
        self._invoker = invoker
        self._trigger = RebuildTrigger(self.config, invoker=invoker)

    @classmethod
    def from_options(
        cls,
        options: Mapping[str, object] | None = None,
        *,
        invoker: Invoker = invoke,
    ) -> CompileBridge:
        return cls(ProjectConfig.from_overrides(options), invoker=invoker)

    @property
    def state(self) -> TriggerState:
        return self._trigger.state

    @property
    def trigger(self) -> RebuildTrigger:
        return self._trigger

    def invocation(self, mode: CompileMode) -> CompileInvocation:
        return CompileInvocation.for_config(self.config, mode)

    def on_build_start(self) -> CompileOutcome:
        outcome = self._invoker(self.config, CompileMode.RELEASE).raise_for_error()
        copied = copy_source_map(self.config)
        if copied is None:
            return outcome
        return CompileOutcome(
            invocation=outcome.invocation,
            duration_ms=outcome.duration_ms,
            source_map=copied,
        )

    def on_file_changed(self, path: str | os.PathLike[str]) -> CompileOutcome | None:
        outcome = self._trigger.handle_change(path)
        if outcome is not None and outcome.error is not None:
            logger.error(
                "asc_debug_rebuild_failed",
                path=str(path),
                exit_code=outcome.error.exit_code,
                stderr_tail=outcome.error.stderr_tail,
            )
        return outcome


__all__ = ["CompileBridge", "HostPlugin"]

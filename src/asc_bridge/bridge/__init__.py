"""Compile bridge: compiler invocation, rebuild triggering, and the host plugin surface."""

from asc_bridge.bridge.compiler import (
    CompileError,
    CompileInvocation,
    CompileMode,
    CompileOutcome,
    copy_source_map,
    invoke,
)
from asc_bridge.bridge.plugin import CompileBridge, HostPlugin
from asc_bridge.bridge.trigger import RebuildTrigger, TriggerState

__all__ = [
    "CompileBridge",
    "CompileError",
    "CompileInvocation",
    "CompileMode",
    "CompileOutcome",
    "HostPlugin",
    "RebuildTrigger",
    "TriggerState",
    "copy_source_map",
    "invoke",
]

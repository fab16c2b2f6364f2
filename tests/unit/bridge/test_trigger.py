"""
asc-bridge — unit tests for the rebuild trigger

Purpose
- Validate path matching, debug-mode scheduling, and the Idle/Compiling states.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from asc_bridge.bridge.compiler import CompileInvocation, CompileMode, CompileOutcome
from asc_bridge.bridge.trigger import RebuildTrigger, TriggerState

if TYPE_CHECKING:
    from asc_bridge.config.project import ProjectConfig
    from tests.conftest import FakeProject


class RecordingInvoker:
    def __init__(self) -> None:
        self.calls: list[CompileMode] = []

    def __call__(self, config: ProjectConfig, mode: CompileMode) -> CompileOutcome:
        self.calls.append(mode)
        return CompileOutcome(
            invocation=CompileInvocation.for_config(config, mode),
            duration_ms=1,
        )


@pytest.mark.unit
def test_change_under_watch_root_triggers_debug_compile(fake_project: FakeProject) -> None:
    invoker = RecordingInvoker()
    trigger = RebuildTrigger(fake_project.config, invoker=invoker)

    outcome = trigger.handle_change(fake_project.root / "assembly" / "index.ts")

    assert outcome is not None
    assert invoker.calls == [CompileMode.DEBUG]
    assert trigger.state is TriggerState.IDLE


@pytest.mark.unit
@pytest.mark.parametrize(
    "relative",
    ["asconfig.json", "build/assembly.wasm", "assemblyx/index.ts", "../elsewhere/index.ts"],
)
def test_changes_outside_watch_root_are_ignored(fake_project: FakeProject, relative: str) -> None:
    invoker = RecordingInvoker()
    trigger = RebuildTrigger(fake_project.config, invoker=invoker)

    assert trigger.handle_change(fake_project.root / relative) is None
    assert invoker.calls == []
    assert trigger.state is TriggerState.IDLE


@pytest.mark.unit
def test_relative_paths_resolve_against_working_directory(
    fake_project: FakeProject,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(fake_project.root)
    trigger = RebuildTrigger(fake_project.config, invoker=RecordingInvoker())

    assert trigger.matches(Path("assembly/nested/util.ts"))
    assert not trigger.matches(Path("node_modules/.bin/asc"))


@pytest.mark.unit
def test_source_map_copied_after_successful_debug_compile(fake_project: FakeProject) -> None:
    fake_project.emit_source_map()
    trigger = RebuildTrigger(fake_project.config)

    outcome = trigger.handle_change(fake_project.root / "assembly" / "index.ts")

    assert outcome is not None
    assert outcome.ok
    assert outcome.source_map == fake_project.config.dist_source_map_path
    assert outcome.source_map.exists()


@pytest.mark.unit
def test_overlapping_changes_each_run_their_own_compile(fake_project: FakeProject) -> None:
    release = threading.Event()
    entered = threading.Barrier(2, timeout=5)
    states: list[TriggerState] = []

    def blocking_invoker(config: ProjectConfig, mode: CompileMode) -> CompileOutcome:
        entered.wait()
        states.append(trigger.state)
        release.wait(timeout=5)
        return CompileOutcome(invocation=CompileInvocation.for_config(config, mode), duration_ms=0)

    trigger = RebuildTrigger(fake_project.config, invoker=blocking_invoker)
    changed = fake_project.root / "assembly" / "index.ts"
    workers = [threading.Thread(target=trigger.handle_change, args=(changed,)) for _ in range(2)]
    for worker in workers:
        worker.start()
    try:
        while len(states) < 2:
            time.sleep(0.01)
    finally:
        release.set()
        for worker in workers:
            worker.join(timeout=5)

    assert states == [TriggerState.COMPILING, TriggerState.COMPILING]
    assert trigger.state is TriggerState.IDLE

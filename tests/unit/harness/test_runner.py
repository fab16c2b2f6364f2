"""
asc-bridge — unit tests for verification runs

Purpose
- Check per-run override merging, provision → verify → teardown ordering, the outer
  attempt timeout, and retry wiring through ``run_verification_with_retry``.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from asc_bridge.bridge.plugin import HostPlugin
from asc_bridge.config.project import ConfigError, ConfigErrorKind, ProjectConfig
from asc_bridge.config.schema import HarnessSettings
from asc_bridge.harness.artifacts import BuildResult, OutputAsset
from asc_bridge.harness.runner import (
    default_host,
    resolve_project,
    run_verification,
    run_verification_with_retry,
)
from asc_bridge.harness.session import Failure, FailureCause, Success, VerificationFailure

if TYPE_CHECKING:
    from tests.conftest import FakeProject


class SiteHost:
    def __init__(self) -> None:
        self.builds = 0

    async def build(self, root: Path, plugins: Sequence[HostPlugin]) -> BuildResult:
        self.builds += 1
        for plugin in plugins:
            plugin.on_build_start()
        return BuildResult(output=(OutputAsset(file_name="index.html", source="<p>hi</p>"),))

    async def serve(self, root: Path, plugins: Sequence[HostPlugin]) -> Any:
        raise AssertionError("static runs never serve")


class ConsolePage:
    """Emits the given console lines, one per navigation, then hangs."""

    def __init__(self, lines: list[str]) -> None:
        self.lines = lines
        self.handlers: dict[str, Callable[[Any], None]] = {}
        self.urls: list[str] = []

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self.handlers[event] = callback

    def remove_listener(self, event: str, callback: Callable[[Any], None]) -> None:
        self.handlers.pop(event, None)

    async def goto(self, url: str) -> None:
        self.urls.append(url)
        if self.lines:
            kind, _, text = self.lines.pop(0).partition(":")
            self.handlers["console"](_Message(kind, text))
        await asyncio.sleep(3600)


class _Message:
    def __init__(self, kind: str, text: str) -> None:
        self.type = kind
        self.text = text


def _launcher_for(page: ConsolePage) -> Any:
    class _Context:
        async def new_page(self) -> ConsolePage:
            return page

        async def close(self) -> None:
            pass

    class _Browser:
        async def new_context(self) -> _Context:
            return _Context()

    @asynccontextmanager
    async def launch(_modern: bool) -> AsyncIterator[_Browser]:
        yield _Browser()

    return launch


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.unit
def test_resolve_project_merges_original_option_names() -> None:
    base = ProjectConfig(source_root="engine", watch_subpath="assembly")

    resolved = resolve_project(base, {"srcMatch": "as", "dist_root": "out"})

    assert resolved.source_root == "engine"
    assert resolved.watch_subpath == "as"
    assert resolved.dist_root == "out"
    assert base.watch_subpath == "assembly"


@pytest.mark.unit
def test_resolve_project_rejects_unknown_options() -> None:
    with pytest.raises(ConfigError) as exc_info:
        resolve_project(None, {"projectRot": "x"})

    assert exc_info.value.kind is ConfigErrorKind.INVALID_OPTION


@pytest.mark.unit
def test_default_host_ignores_dist_tree() -> None:
    host = default_host(ProjectConfig(dist_root="dist/assets"), HarnessSettings())

    assert "dist" in host.ignored_dirs
    assert "node_modules" in host.ignored_dirs


@pytest.mark.unit
@pytest.mark.asyncio
async def test_static_run_passes_on_expected_marker(fake_project: FakeProject) -> None:
    page = ConsolePage(["log:PASS! (modernBrowser = true)"])

    verdict = await run_verification(
        "static",
        modern_browser=True,
        config=fake_project.config,
        host=SiteHost(),
        root=fake_project.root,
        launcher=_launcher_for(page),
    )

    assert verdict == Success("PASS! (modernBrowser = true)")
    assert page.urls[0].startswith("http://127.0.0.1:")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_project_root_fails_before_build(
    fake_project: FakeProject,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(fake_project.root.parent)
    host = SiteHost()

    with pytest.raises(ConfigError, match="foobar"):
        await run_verification(
            "static",
            modern_browser=True,
            overrides={"projectRoot": "foobar"},
            config=fake_project.config,
            host=host,
            root=fake_project.root,
            launcher=_launcher_for(ConsolePage([])),
        )

    assert host.builds == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_silent_page_times_out(fake_project: FakeProject) -> None:
    verdict = await run_verification(
        "static",
        modern_browser=True,
        config=fake_project.config,
        host=SiteHost(),
        root=fake_project.root,
        launcher=_launcher_for(ConsolePage([])),
        attempt_timeout_seconds=0.2,
    )

    assert verdict == Failure(FailureCause.TIMEOUT, "no verdict within 0.2s")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_wrapper_rebuilds_for_each_attempt(fake_project: FakeProject) -> None:
    page = ConsolePage(["error:not ready", "error:still not ready", "log:PASS! (modernBrowser = false)"])
    host = SiteHost()
    sleep = RecordingSleep()

    result = await run_verification_with_retry(
        "static",
        modern_browser=False,
        config=fake_project.config,
        host=host,
        root=fake_project.root,
        launcher=_launcher_for(page),
        sleep=sleep,
    )

    assert result == Success("PASS! (modernBrowser = false)")
    assert host.builds == 3
    assert sleep.delays == [1.0, 1.0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_wrapper_surfaces_last_failure(fake_project: FakeProject) -> None:
    page = ConsolePage(["error:first", "error:second"])

    with pytest.raises(VerificationFailure) as exc_info:
        await run_verification_with_retry(
            "static",
            modern_browser=True,
            config=fake_project.config,
            host=SiteHost(),
            root=fake_project.root,
            launcher=_launcher_for(page),
            max_attempts=2,
            sleep=RecordingSleep(),
        )

    assert str(exc_info.value) == "Error message from browser console: second"

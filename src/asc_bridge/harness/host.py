"""
asc-bridge — host build tool boundary.

Purpose
- Drive an external host build tool (default: the Vite CLI) with the compile bridge
  attached as a plugin.

Functional requirements
- ``build`` fires every plugin's ``on_build_start``, runs the build command into a
  temporary output directory, and describes the produced files as a ``BuildResult``.
- ``serve`` fires ``on_build_start``, starts the dev-server command on a free local
  port, and feeds ``on_file_changed`` from a polling file watcher.
- ``DevServer.close`` stops the watcher, then terminates the process (terminate,
  bounded wait, kill).

Non-functional requirements
- Plugin hooks block on compiler subprocesses and therefore run on worker threads.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import tempfile
from collections.abc import Callable, Iterable, Mapping, Sequence
from contextlib import suppress
from pathlib import Path
from typing import Final, Protocol

import structlog

from asc_bridge.bridge.plugin import HostPlugin
from asc_bridge.constants import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_SERVE_COMMAND,
    LOOPBACK_HOST,
)
from asc_bridge.harness.artifacts import BuildResult, OutputAsset, OutputChunk, OutputItem
from asc_bridge.harness.errors import ProvisionError
from asc_bridge.utils.net import find_free_port

CHUNK_SUFFIXES: Final[frozenset[str]] = frozenset({".js", ".mjs", ".cjs"})
TEXT_ASSET_SUFFIXES: Final[frozenset[str]] = frozenset(
    {".html", ".css", ".json", ".map", ".svg", ".txt"}
)
DEFAULT_IGNORED_DIRS: Final[frozenset[str]] = frozenset({"node_modules", ".git"})

_TERMINATE_GRACE_SECONDS: Final[float] = 5.0
_KILL_GRACE_SECONDS: Final[float] = 3.0

logger = structlog.get_logger(__name__)


class DevServerHandle(Protocol):
    host: str
    port: int

    @property
    def url(self) -> str: ...

    async def close(self) -> None: ...


class BuildHost(Protocol):
    """What a provisioner needs from the host build tool."""

    async def build(self, root: Path, plugins: Sequence[HostPlugin]) -> object: ...

    async def serve(self, root: Path, plugins: Sequence[HostPlugin]) -> DevServerHandle: ...


def render_command(template: Sequence[str], **values: object) -> tuple[str, ...]:
    """Fill ``{out_dir}``, ``{host}`` and ``{port}`` style placeholders in each argument."""

    try:
        return tuple(part.format(**values) for part in template)
    except (KeyError, IndexError) as exc:
        raise ProvisionError(f"unknown placeholder in host command {list(template)}: {exc}") from exc


class FileWatcher:
    """Polls a directory tree for modified or created files."""

    def __init__(
        self,
        root: Path,
        on_change: Callable[[Path], object],
        *,
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
        interval_seconds: float = 0.25,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.root = root.resolve()
        self._on_change = on_change
        self._ignored = frozenset(ignored_dirs)
        self._interval = interval_seconds
        self._snapshot: dict[Path, int] = {}
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[object]] = set()

    def prime(self) -> None:
        self._snapshot = self._take_snapshot()

    def scan(self) -> list[Path]:
        """Diff against the previous snapshot; returns changed paths in sorted order."""

        current = self._take_snapshot()
        changed = sorted(
            path for path, mtime in current.items() if self._snapshot.get(path) != mtime
        )
        self._snapshot = current
        return changed

    def start(self) -> None:
        if self._task is not None:
            return
        self.prime()
        self._task = asyncio.create_task(self._run(), name="asc-file-watcher")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            changed = await asyncio.to_thread(self.scan)
            for path in changed:
                # Each change gets its own dispatch; overlapping compiles are allowed.
                dispatch = asyncio.create_task(asyncio.to_thread(self._on_change, path))
                self._pending.add(dispatch)
                dispatch.add_done_callback(self._dispatch_done)

    def _dispatch_done(self, task: asyncio.Task[object]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "file_change_handler_failed",
                error=repr(task.exception()),
            )

    def _take_snapshot(self) -> dict[Path, int]:
        snapshot: dict[Path, int] = {}
        for directory, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [name for name in dirnames if name not in self._ignored]
            for filename in filenames:
                path = Path(directory) / filename
                with suppress(FileNotFoundError):
                    snapshot[path] = path.stat().st_mtime_ns
        return snapshot


class DevServer:
    """A running host dev-server process plus the watcher feeding its plugins."""

    def __init__(
        self,
        *,
        process: asyncio.subprocess.Process,
        watcher: FileWatcher | None,
        host: str,
        port: int,
    ) -> None:
        self._process = process
        self._watcher = watcher
        self.host = host
        self.port = port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def close(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()
        if self._process.returncode is not None:
            return

        _signal_process(self._process, signal.SIGTERM)
        try:
            await asyncio.wait_for(self._process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
        except TimeoutError:
            _signal_process(self._process, signal.SIGKILL if sys.platform != "win32" else None)
            with suppress(TimeoutError):
                await asyncio.wait_for(self._process.wait(), timeout=_KILL_GRACE_SECONDS)
        logger.info("dev_server_stopped", url=self.url, exit_code=self._process.returncode)


class CommandBuildHost:
    """``BuildHost`` that shells out to the host build tool's CLI."""

    def __init__(
        self,
        *,
        build_command: Sequence[str] = DEFAULT_BUILD_COMMAND,
        serve_command: Sequence[str] = DEFAULT_SERVE_COMMAND,
        host: str = LOOPBACK_HOST,
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
        watch_interval_seconds: float = 0.25,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.build_command = tuple(build_command)
        self.serve_command = tuple(serve_command)
        self.host = host
        self.ignored_dirs = frozenset(ignored_dirs)
        self.watch_interval_seconds = watch_interval_seconds
        self._env = dict(env) if env is not None else None

    async def build(self, root: Path, plugins: Sequence[HostPlugin]) -> BuildResult:
        await _fire_build_start(plugins)
        with tempfile.TemporaryDirectory(prefix="asc-bridge-build-") as out_dir:
            argv = render_command(self.build_command, out_dir=out_dir)
            process = await self._spawn(argv, root)
            exit_code = await process.wait()
            if exit_code != 0:
                raise ProvisionError(f"host build exited with code {exit_code}: {argv[0]}")
            result = BuildResult(output=tuple(collect_output(Path(out_dir))))
        logger.info("host_build_finished", root=str(root), files=len(result.output))
        return result

    async def serve(self, root: Path, plugins: Sequence[HostPlugin]) -> DevServer:
        await _fire_build_start(plugins)
        port = find_free_port(self.host)
        argv = render_command(self.serve_command, host=self.host, port=port)
        process = await self._spawn(argv, root)

        watcher: FileWatcher | None = None
        if plugins:
            watcher = FileWatcher(
                root,
                _fan_out(plugins),
                ignored_dirs=self.ignored_dirs,
                interval_seconds=self.watch_interval_seconds,
            )
            watcher.start()

        server = DevServer(process=process, watcher=watcher, host=self.host, port=port)
        logger.info("dev_server_spawned", url=server.url, pid=process.pid)
        return server

    async def _spawn(self, argv: tuple[str, ...], root: Path) -> asyncio.subprocess.Process:
        env = os.environ.copy()
        if self._env is not None:
            env.update(self._env)
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(root),
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                start_new_session=sys.platform != "win32",
            )
        except OSError as exc:
            raise ProvisionError(f"failed to start host command {argv[0]}: {exc}") from exc


def collect_output(out_dir: Path) -> list[OutputItem]:
    """Describe every file under ``out_dir`` as a chunk or asset, in path order."""

    items: list[OutputItem] = []
    for path in sorted(p for p in out_dir.rglob("*") if p.is_file()):
        file_name = path.relative_to(out_dir).as_posix()
        suffix = path.suffix.lower()
        if suffix in CHUNK_SUFFIXES:
            items.append(OutputChunk(file_name=file_name, code=path.read_text(encoding="utf-8")))
        elif suffix in TEXT_ASSET_SUFFIXES:
            items.append(OutputAsset(file_name=file_name, source=path.read_text(encoding="utf-8")))
        else:
            items.append(OutputAsset(file_name=file_name, source=path.read_bytes()))
    return items


async def _fire_build_start(plugins: Sequence[HostPlugin]) -> None:
    for plugin in plugins:
        logger.debug("plugin_build_start", plugin=plugin.name)
        await asyncio.to_thread(plugin.on_build_start)


def _fan_out(plugins: Sequence[HostPlugin]) -> Callable[[Path], None]:
    def notify(path: Path) -> None:
        for plugin in plugins:
            plugin.on_file_changed(path)

    return notify


def _signal_process(process: asyncio.subprocess.Process, sig: signal.Signals | None) -> None:
    with suppress(ProcessLookupError):
        if sig is None:
            process.kill()
        elif sys.platform != "win32":
            os.killpg(process.pid, sig)
        else:
            process.terminate()


__all__ = [
    "BuildHost",
    "CHUNK_SUFFIXES",
    "CommandBuildHost",
    "DEFAULT_IGNORED_DIRS",
    "DevServer",
    "DevServerHandle",
    "FileWatcher",
    "TEXT_ASSET_SUFFIXES",
    "collect_output",
    "render_command",
]

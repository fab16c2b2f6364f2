"""
asc-bridge — build provisioning strategies.

Purpose
- Turn a ``ProjectConfig`` into a reachable base URL for compiled output.

Functional requirements
- ``live``: start the host dev server with the compile bridge attached and return
  once its port accepts connections (bounded readiness polling).
- ``static``: run exactly one release build, flatten its output into an
  ``ArtifactMap`` and serve it from an ephemeral port (ready once bound).
- Both strategies construct the compile bridge first, so layout ``ConfigError``s
  propagate unchanged before any server starts.
- Bind and readiness failures raise ``ProvisionError``; no internal retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import structlog

from asc_bridge.bridge.plugin import CompileBridge
from asc_bridge.constants import DEFAULT_READY_TIMEOUT_SECONDS
from asc_bridge.harness.artifacts import ArtifactMap, flatten_build_output
from asc_bridge.harness.errors import ProvisionError
from asc_bridge.harness.server import ArtifactServer
from asc_bridge.utils.net import wait_for_port

if TYPE_CHECKING:
    from types import TracebackType

    from asc_bridge.config.project import ProjectConfig
    from asc_bridge.harness.host import BuildHost

logger = structlog.get_logger(__name__)


class ProvisionStrategy(StrEnum):
    LIVE = "live"
    STATIC = "static"


@dataclass(slots=True)
class ProvisionedServer:
    """A ready base URL plus the teardown for whatever serves it."""

    url: str
    strategy: ProvisionStrategy
    closer: Callable[[], Awaitable[None]]
    artifacts: ArtifactMap | None = None
    closed: bool = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.closer()

    async def __aenter__(self) -> ProvisionedServer:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class Provisioner(Protocol):
    strategy: ProvisionStrategy

    async def provision(self, config: ProjectConfig) -> ProvisionedServer: ...


class LiveProvisioner:
    strategy = ProvisionStrategy.LIVE

    def __init__(
        self,
        host: BuildHost,
        *,
        root: Path | None = None,
        ready_timeout_seconds: float = DEFAULT_READY_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host
        self.root = root if root is not None else Path.cwd()
        self.ready_timeout_seconds = ready_timeout_seconds

    async def provision(self, config: ProjectConfig) -> ProvisionedServer:
        bridge = CompileBridge(config)
        server = await self.host.serve(self.root, [bridge])
        ready = await wait_for_port(
            server.port,
            host=server.host,
            timeout_seconds=self.ready_timeout_seconds,
        )
        if not ready:
            await server.close()
            raise ProvisionError(
                f"dev server at {server.host}:{server.port} not ready within "
                f"{self.ready_timeout_seconds:g}s"
            )
        logger.info("provisioned", strategy=self.strategy.value, url=server.url)
        return ProvisionedServer(url=server.url, strategy=self.strategy, closer=server.close)


class StaticProvisioner:
    strategy = ProvisionStrategy.STATIC

    def __init__(self, host: BuildHost, *, root: Path | None = None) -> None:
        self.host = host
        self.root = root if root is not None else Path.cwd()

    async def provision(self, config: ProjectConfig) -> ProvisionedServer:
        bridge = CompileBridge(config)
        result = await self.host.build(self.root, [bridge])
        artifacts = flatten_build_output(result)
        running = ArtifactServer(artifacts).start()

        async def close() -> None:
            await asyncio.to_thread(running.close)

        logger.info(
            "provisioned",
            strategy=self.strategy.value,
            url=running.url,
            artifacts=len(artifacts),
        )
        return ProvisionedServer(
            url=running.url,
            strategy=self.strategy,
            closer=close,
            artifacts=artifacts,
        )


def make_provisioner(
    strategy: ProvisionStrategy | str,
    host: BuildHost,
    *,
    root: Path | None = None,
    ready_timeout_seconds: float = DEFAULT_READY_TIMEOUT_SECONDS,
) -> Provisioner:
    resolved = ProvisionStrategy(strategy)
    if resolved is ProvisionStrategy.LIVE:
        return LiveProvisioner(host, root=root, ready_timeout_seconds=ready_timeout_seconds)
    return StaticProvisioner(host, root=root)


__all__ = [
    "LiveProvisioner",
    "ProvisionStrategy",
    "ProvisionedServer",
    "Provisioner",
    "StaticProvisioner",
    "make_provisioner",
]

"""
asc-bridge — end-to-end verification runs.

One run is provision → verify → teardown. ``run_verification_with_retry`` wraps runs in
the retry supervisor. Per-run configuration overrides are merged onto the base project
config, which is how layout failures are exercised without touching the base config.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path

import structlog

from asc_bridge.config.project import ProjectConfig, canonical_option_keys
from asc_bridge.config.schema import HarnessSettings, RetryPolicy
from asc_bridge.harness.host import DEFAULT_IGNORED_DIRS, BuildHost, CommandBuildHost
from asc_bridge.harness.provisioner import ProvisionStrategy, make_provisioner
from asc_bridge.harness.retry import RetrySupervisor, Sleep
from asc_bridge.harness.session import (
    BrowserLauncher,
    Failure,
    FailureCause,
    Success,
    VerificationVerdict,
    launch_firefox,
    verify,
)
from asc_bridge.observability.logging import correlation_scope

logger = structlog.get_logger(__name__)


def resolve_project(
    base: ProjectConfig | None = None,
    overrides: Mapping[str, object] | None = None,
) -> ProjectConfig:
    """Merge per-run overrides (snake_case or original option names) onto ``base``."""

    merged: dict[str, object] = dict(base.to_dict()) if base is not None else {}
    if overrides:
        merged.update(canonical_option_keys(overrides))
    return ProjectConfig.from_overrides(merged)


def default_host(config: ProjectConfig, settings: HarnessSettings) -> CommandBuildHost:
    dist_top = Path(config.dist_root).parts[:1]
    return CommandBuildHost(
        build_command=settings.build_command,
        serve_command=settings.serve_command,
        ignored_dirs=DEFAULT_IGNORED_DIRS | frozenset(dist_top),
    )


async def run_verification(
    strategy: ProvisionStrategy | str,
    *,
    modern_browser: bool,
    overrides: Mapping[str, object] | None = None,
    config: ProjectConfig | None = None,
    settings: HarnessSettings | None = None,
    host: BuildHost | None = None,
    root: Path | None = None,
    launcher: BrowserLauncher = launch_firefox,
    attempt_timeout_seconds: float | None = None,
) -> VerificationVerdict:
    """Provision a server, verify it in one browser session, and tear it down."""

    resolved_strategy = ProvisionStrategy(strategy)
    resolved_settings = settings if settings is not None else HarnessSettings()
    project = resolve_project(config, overrides)
    build_host = host if host is not None else default_host(project, resolved_settings)
    provisioner = make_provisioner(
        resolved_strategy,
        build_host,
        root=root,
        ready_timeout_seconds=resolved_settings.ready_timeout_seconds,
    )

    with correlation_scope(strategy=resolved_strategy.value):
        server = await provisioner.provision(project)
        async with server:
            session = verify(server.url, modern_browser=modern_browser, launcher=launcher)
            if attempt_timeout_seconds is None:
                return await session
            try:
                return await asyncio.wait_for(session, timeout=attempt_timeout_seconds)
            except TimeoutError:
                logger.warning(
                    "verification_timed_out",
                    url=server.url,
                    timeout_seconds=attempt_timeout_seconds,
                )
                return Failure(
                    FailureCause.TIMEOUT,
                    f"no verdict within {attempt_timeout_seconds:g}s",
                )


async def run_verification_with_retry(
    strategy: ProvisionStrategy | str,
    *,
    modern_browser: bool,
    overrides: Mapping[str, object] | None = None,
    config: ProjectConfig | None = None,
    settings: HarnessSettings | None = None,
    host: BuildHost | None = None,
    root: Path | None = None,
    launcher: BrowserLauncher = launch_firefox,
    attempt_timeout_seconds: float | None = None,
    max_attempts: int | None = None,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> Success:
    resolved_settings = settings if settings is not None else HarnessSettings()
    supervisor = RetrySupervisor(
        max_attempts=max_attempts if max_attempts is not None else resolved_settings.max_attempts,
        backoff_seconds=resolved_settings.backoff_seconds,
        policy=policy if policy is not None else resolved_settings.retry_policy,
        sleep=sleep,
    )

    async def attempt() -> VerificationVerdict:
        return await run_verification(
            strategy,
            modern_browser=modern_browser,
            overrides=overrides,
            config=config,
            settings=resolved_settings,
            host=host,
            root=root,
            launcher=launcher,
            attempt_timeout_seconds=attempt_timeout_seconds,
        )

    return await supervisor.run(attempt)


__all__ = [
    "default_host",
    "resolve_project",
    "run_verification",
    "run_verification_with_retry",
]

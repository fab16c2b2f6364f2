"""Command-line interface router for asc-bridge."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from asc_bridge.bridge import CompileBridge, CompileMode
from asc_bridge.config import (
    dump_effective_config,
    harness_settings,
    load_config,
    project_config,
)
from asc_bridge.harness.host import FileWatcher
from asc_bridge.harness.provisioner import ProvisionStrategy
from asc_bridge.harness.runner import run_verification_with_retry
from asc_bridge.observability.logging import setup_logging, shutdown_logging
from asc_bridge.ui.render import CLIRenderer, create_renderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="asc-bridge",
        description=(
            "asc-bridge — AssemblyScript compile bridge and browser verification harness.\n\n"
            "Common workflows:\n"
            "  asc-bridge build                     Release compile of the project\n"
            "  asc-bridge watch                     Release compile, then debug rebuilds on change\n"
            "  asc-bridge verify --strategy static  Build, serve, and check in Firefox\n"
            "  asc-bridge config                    Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to asc-bridge TOML config (default: ./asc-bridge.toml if present).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help=(
            "Override a config value; bare keys address [project] "
            "(e.g. --set projectRoot=src/as --set harness.max_attempts=3)."
        ),
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and DEBUG logs.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # build ---------------------------------------------------------------
    build_parser_ = subparsers.add_parser(
        "build",
        parents=[common],
        help="Run a release compile and copy the source map",
    )
    build_parser_.set_defaults(handler=_cmd_build)

    # watch ---------------------------------------------------------------
    watch_parser = subparsers.add_parser(
        "watch",
        parents=[common],
        help="Release compile, then debug rebuilds whenever watched sources change",
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=0.25,
        help="Polling interval in seconds (default: 0.25).",
    )
    watch_parser.set_defaults(handler=_cmd_watch)

    # verify --------------------------------------------------------------
    verify_parser = subparsers.add_parser(
        "verify",
        parents=[common],
        help="Provision the app and verify it in a real browser",
        description=(
            "Serve the compiled app and wait for the success marker in Firefox.\n\n"
            "Examples:\n"
            "  asc-bridge verify --strategy static\n"
            "  asc-bridge verify --strategy live --legacy\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    verify_parser.add_argument(
        "--strategy",
        choices=[item.value for item in ProvisionStrategy],
        default=ProvisionStrategy.STATIC.value,
        help="live dev server or one-shot static build (default: static).",
    )
    verify_parser.add_argument(
        "--legacy",
        action="store_true",
        default=False,
        help="Disable native module scripts to emulate a legacy browser.",
    )
    verify_parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Override harness.max_attempts.",
    )
    verify_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-attempt timeout in seconds (default: none).",
    )
    verify_parser.set_defaults(handler=_cmd_verify)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration as JSON",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_build(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    renderer = _get_renderer(args)
    with _logging_session(config, args):
        bridge = CompileBridge(project_config(config))
        renderer.detail("Command", bridge.invocation(CompileMode.RELEASE).command_line)
        outcome = bridge.on_build_start()

    renderer.ok(f"release compile ({outcome.duration_ms} ms)")
    if outcome.source_map is not None:
        renderer.kv("Source map", outcome.source_map)
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    renderer = _get_renderer(args)
    with _logging_session(config, args):
        bridge = CompileBridge(project_config(config))
        outcome = bridge.on_build_start()
        renderer.ok(f"release compile ({outcome.duration_ms} ms)")
        renderer.kv("Watching", bridge.trigger.watch_root)

        def on_change(path: Path) -> None:
            result = bridge.on_file_changed(path)
            if result is None:
                return
            if result.ok:
                renderer.ok(f"debug rebuild ({result.duration_ms} ms): {path}")
            else:
                renderer.fail(f"debug rebuild: {path}")

        watcher = FileWatcher(bridge.trigger.watch_root, on_change, interval_seconds=args.interval)
        try:
            asyncio.run(_watch_forever(watcher))
        except KeyboardInterrupt:
            renderer.text("stopped")
    return 0


async def _watch_forever(watcher: FileWatcher) -> None:
    watcher.start()
    try:
        await asyncio.Event().wait()
    finally:
        await watcher.stop()


def _cmd_verify(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    renderer = _get_renderer(args)
    project = project_config(config)
    settings = harness_settings(config)
    modern_browser = not args.legacy
    if args.max_attempts is not None and args.max_attempts < 1:
        raise CLIError("--max-attempts must be >= 1")

    with _logging_session(config, args):
        success = asyncio.run(
            run_verification_with_retry(
                args.strategy,
                modern_browser=modern_browser,
                config=project,
                settings=settings,
                max_attempts=args.max_attempts,
                attempt_timeout_seconds=args.timeout,
            )
        )

    renderer.ok(f"{args.strategy} ({'modern' if modern_browser else 'legacy'} browser)")
    renderer.kv("Log", success.log_line)
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _get_renderer(args).text(dump_effective_config(config))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    return load_config(
        args.config_path,
        cli_overrides=parse_overrides(getattr(args, "overrides", [])),
    )


def parse_overrides(raw_items: Sequence[str]) -> dict[str, object]:
    """Turn ``KEY=VALUE`` strings into loader overrides; JSON values are decoded."""

    overrides: dict[str, object] = {}
    for item in raw_items:
        key, sep, raw_value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise CLIError(f"invalid --set value {item!r}; expected KEY=VALUE")
        overrides[key] = _parse_override_value(raw_value.strip())
    return overrides


def _parse_override_value(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=bool(getattr(args, "verbose", False)))


@contextmanager
def _logging_session(config: dict[str, Any], args: argparse.Namespace) -> Iterator[None]:
    run_id = f"{time.strftime('%Y%m%dT%H%M%SZ', time.gmtime())}-{os.getpid()}"
    setup_logging(
        config.get("logging"),
        run_id=run_id,
        verbose=bool(getattr(args, "verbose", False)),
    )
    try:
        yield
    finally:
        shutdown_logging()


__all__ = ["CLIError", "build_parser", "parse_overrides", "run_cli"]

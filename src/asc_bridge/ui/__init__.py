"""CLI surface for asc-bridge."""

from asc_bridge.ui.cli import CLIError, build_parser, run_cli
from asc_bridge.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]

"""Stable constants shared by the compile bridge and the verification harness."""

from __future__ import annotations

from typing import Final

# Prefix for every user-visible configuration error message.
PLUGIN_TAG: Final[str] = "[vite-plugin-assemblyscript]"
PLUGIN_NAME: Final[str] = "vite-plugin-assemblyscript"

# Project layout defaults (relative to the source root unless noted).
DEFAULT_SOURCE_ROOT: Final[str] = "src/engine"
DEFAULT_ENTRY_FILE: Final[str] = "assembly/index.ts"
DEFAULT_CONFIG_FILE: Final[str] = "asconfig.json"
DEFAULT_WATCH_SUBPATH: Final[str] = "assembly"
DEFAULT_OUTPUT_ARTIFACT: Final[str] = "build/assembly.wasm"
DEFAULT_DIST_ROOT: Final[str] = "dist"
DEFAULT_TOOL_BIN_DIR: Final[str] = "node_modules/.bin"
DEFAULT_COMPILER_BIN: Final[str] = "asc"
SOURCE_MAP_SUFFIX: Final[str] = ".map"

# Artifact serving.
INDEX_PATH: Final[str] = "index.html"
LOOPBACK_HOST: Final[str] = "127.0.0.1"

# Verification oracle emitted by the served application.
SUCCESS_PREFIX: Final[str] = "PASS!"
SUCCESS_TEMPLATE: Final[str] = "PASS! (modernBrowser = {modern})"
CONSOLE_ERROR_PREFIX: Final[str] = "Error message from browser console: "

# Retry supervision.
DEFAULT_MAX_ATTEMPTS: Final[int] = 10
DEFAULT_BACKOFF_SECONDS: Final[float] = 1.0
DEFAULT_READY_TIMEOUT_SECONDS: Final[float] = 30.0

# Host build tool command templates; placeholders are filled per invocation.
DEFAULT_BUILD_COMMAND: Final[tuple[str, ...]] = (
    "npx",
    "vite",
    "build",
    "--outDir",
    "{out_dir}",
    "--emptyOutDir",
    "--logLevel",
    "error",
)
DEFAULT_SERVE_COMMAND: Final[tuple[str, ...]] = (
    "npx",
    "vite",
    "--host",
    "{host}",
    "--port",
    "{port}",
    "--strictPort",
    "--logLevel",
    "error",
)


def expected_success_log(modern_browser: bool) -> str:
    """Render the console line a healthy page logs, using JavaScript boolean spelling."""

    return SUCCESS_TEMPLATE.format(modern="true" if modern_browser else "false")


__all__ = [
    "CONSOLE_ERROR_PREFIX",
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_BUILD_COMMAND",
    "DEFAULT_COMPILER_BIN",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_DIST_ROOT",
    "DEFAULT_ENTRY_FILE",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_OUTPUT_ARTIFACT",
    "DEFAULT_READY_TIMEOUT_SECONDS",
    "DEFAULT_SERVE_COMMAND",
    "DEFAULT_SOURCE_ROOT",
    "DEFAULT_TOOL_BIN_DIR",
    "DEFAULT_WATCH_SUBPATH",
    "INDEX_PATH",
    "LOOPBACK_HOST",
    "PLUGIN_NAME",
    "PLUGIN_TAG",
    "SOURCE_MAP_SUFFIX",
    "SUCCESS_PREFIX",
    "SUCCESS_TEMPLATE",
    "expected_success_log",
]

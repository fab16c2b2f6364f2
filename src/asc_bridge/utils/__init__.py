"""Utility exports for filesystem and local networking helpers."""

from asc_bridge.utils.fs import atomic_write, copy_if_exists, is_within
from asc_bridge.utils.net import find_free_port, try_connect, wait_for_port

__all__ = [
    "atomic_write",
    "copy_if_exists",
    "find_free_port",
    "is_within",
    "try_connect",
    "wait_for_port",
]

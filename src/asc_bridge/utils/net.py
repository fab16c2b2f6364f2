"""Local TCP helpers: ephemeral port discovery and readiness polling."""

from __future__ import annotations

import asyncio
import socket
import time

from asc_bridge.constants import LOOPBACK_HOST


def find_free_port(host: str = LOOPBACK_HOST) -> int:
    """Ask the OS for an unused port. The port is released before returning."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return int(sock.getsockname()[1])


def try_connect(host: str, port: int, *, timeout_seconds: float = 1.0) -> bool:
    """Attempt a TCP connection. Returns True on success."""

    try:
        with socket.create_connection((host, port), timeout=timeout_seconds):
            return True
    except OSError:
        return False


async def wait_for_port(
    port: int,
    *,
    host: str = LOOPBACK_HOST,
    timeout_seconds: float,
    interval_seconds: float = 0.1,
) -> bool:
    """Poll until ``host:port`` accepts connections. Returns False on timeout."""

    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")

    deadline = time.monotonic() + timeout_seconds
    while True:
        if await asyncio.to_thread(try_connect, host, port):
            return True
        if time.monotonic() >= deadline:
            return False
        await asyncio.sleep(interval_seconds)


__all__ = ["find_free_port", "try_connect", "wait_for_port"]

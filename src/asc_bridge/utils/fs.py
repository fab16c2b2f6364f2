"""
asc-bridge — filesystem utilities

Purpose
- Atomic writes for build artifacts copied under the dist root.
- Optional-source copies that create intermediate directories as needed.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- A missing copy source is not an error.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "copy_if_exists",
    "is_within",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)
    payload = data.encode(encoding) if isinstance(data, str) else data

    try:
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def copy_if_exists(source: PathLike, destination: PathLike) -> Path | None:
    """Copy ``source`` to ``destination`` when it exists; return the destination or ``None``."""

    source_path = Path(source)
    if not source_path.is_file():
        return None
    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    # Concurrent debug compiles may race here; the last writer wins.
    atomic_write(target, source_path.read_bytes())
    return target


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if ``child`` resolves to a location inside ``parent``."""

    resolved_parent = Path(parent).resolve()
    resolved_child = Path(child).resolve()
    return resolved_child == resolved_parent or resolved_child.is_relative_to(resolved_parent)

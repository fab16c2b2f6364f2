"""
asc-bridge — unit tests for filesystem utilities
"""

from __future__ import annotations

from pathlib import Path

import pytest

from asc_bridge.utils.fs import atomic_write, copy_if_exists, is_within


@pytest.mark.unit
def test_atomic_write_replaces_content_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "out.map"
    atomic_write(target, "first")
    atomic_write(target, b"second")

    assert target.read_bytes() == b"second"
    assert [p.name for p in tmp_path.iterdir()] == ["out.map"]


@pytest.mark.unit
def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "out.map", "x")


@pytest.mark.unit
def test_copy_if_exists_creates_parents(tmp_path: Path) -> None:
    source = tmp_path / "build" / "assembly.wasm.map"
    source.parent.mkdir()
    source.write_text("{}", encoding="utf-8")

    copied = copy_if_exists(source, tmp_path / "dist" / "as" / "assembly.wasm.map")

    assert copied is not None
    assert copied.read_text(encoding="utf-8") == "{}"
    assert copy_if_exists(tmp_path / "nope", tmp_path / "dist" / "nope") is None
    assert not (tmp_path / "dist" / "nope").exists()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("child", "expected"),
    [("as", True), ("as/lib/util.ts", True), ("as/../asx/index.ts", False), ("asx", False)],
)
def test_is_within(tmp_path: Path, child: str, expected: bool) -> None:
    assert is_within(tmp_path / child, tmp_path / "as") is expected

"""
asc-bridge — build output model and artifact map.

Purpose
- Describe what a one-shot host build produced (code chunks and raw assets).
- Flatten that description into an immutable ``ArtifactMap`` keyed by served path.

Functional requirements
- Served paths are relative with no leading separator; ``""`` is the index page.
- Duplicate served paths and unrecognized result shapes raise ``ProvisionError``.
- A watcher-shaped result (anything exposing ``close``) is an internal contract
  violation of the host, never a result to guess from.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from asc_bridge.constants import INDEX_PATH
from asc_bridge.harness.errors import ProvisionError

WATCHER_RESULT_MESSAGE = "Internal error in build host"


@dataclass(frozen=True, slots=True)
class Artifact:
    """Served bytes plus whether the build emitted them as text.

    ``textual`` is informational; the served content type and charset come from the
    path extension only.
    """

    content: bytes
    textual: bool


@dataclass(frozen=True, slots=True)
class OutputChunk:
    """Executable code emitted by the host build."""

    file_name: str
    code: str


@dataclass(frozen=True, slots=True)
class OutputAsset:
    """Raw resource emitted by the host build; text or bytes."""

    file_name: str
    source: bytes | str


OutputItem = OutputChunk | OutputAsset


@dataclass(frozen=True, slots=True)
class BuildResult:
    output: tuple[OutputItem, ...]


def normalize_served_path(path: str) -> str:
    """Strip leading separators; the empty path and ``/`` name the index page."""

    relative = path.lstrip("/")
    return relative or INDEX_PATH


class ArtifactMap(Mapping[str, Artifact]):
    """Read-only served-path → artifact mapping built once per one-shot build."""

    __slots__ = ("_entries",)

    def __init__(self, items: Iterable[tuple[str, Artifact]] = ()) -> None:
        entries: dict[str, Artifact] = {}
        for raw_path, artifact in items:
            path = normalize_served_path(raw_path)
            if path in entries:
                raise ProvisionError(f"duplicate served path in build output: {path}")
            entries[path] = artifact
        self._entries = MappingProxyType(entries)

    def __getitem__(self, key: str) -> Artifact:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ArtifactMap({sorted(self._entries)!r})"

    def lookup(self, request_path: str) -> Artifact | None:
        return self._entries.get(normalize_served_path(request_path))

    @classmethod
    def from_output(cls, items: Iterable[OutputItem]) -> ArtifactMap:
        return cls((item.file_name, _artifact_for(item)) for item in items)


def flatten_build_output(result: object) -> ArtifactMap:
    """Flatten one build result, or a multi-build sequence of them, into an ``ArtifactMap``."""

    return ArtifactMap.from_output(_output_items(result))


def _output_items(result: object) -> list[OutputItem]:
    if hasattr(result, "close") or (isinstance(result, Mapping) and "close" in result):
        raise ProvisionError(WATCHER_RESULT_MESSAGE)
    if isinstance(result, BuildResult):
        return list(result.output)
    if isinstance(result, Mapping):
        return _items_from_mapping(result)
    if isinstance(result, Sequence) and not isinstance(result, (str, bytes, bytearray)):
        items: list[OutputItem] = []
        for nested in result:
            if isinstance(nested, Sequence) and not isinstance(nested, (str, bytes, bytearray)):
                raise ProvisionError("nested multi-build results are not supported")
            items.extend(_output_items(nested))
        return items
    raise ProvisionError(f"unrecognized build result shape: {type(result).__name__}")


def _items_from_mapping(result: Mapping[object, object]) -> list[OutputItem]:
    output = result.get("output")
    if not isinstance(output, Sequence) or isinstance(output, (str, bytes, bytearray)):
        raise ProvisionError("build result is missing an 'output' list")

    items: list[OutputItem] = []
    for index, raw in enumerate(output):
        if isinstance(raw, (OutputChunk, OutputAsset)):
            items.append(raw)
            continue
        if not isinstance(raw, Mapping):
            raise ProvisionError(f"build output[{index}] is not an object")
        file_name = raw.get("fileName")
        if not isinstance(file_name, str) or not file_name:
            raise ProvisionError(f"build output[{index}] has no fileName")
        kind = raw.get("type")
        if kind == "chunk":
            code = raw.get("code")
            if not isinstance(code, str):
                raise ProvisionError(f"build output[{index}] chunk {file_name} has no code")
            items.append(OutputChunk(file_name=file_name, code=code))
        elif kind == "asset":
            source = raw.get("source")
            if not isinstance(source, (str, bytes, bytearray)):
                raise ProvisionError(f"build output[{index}] asset {file_name} has no source")
            items.append(
                OutputAsset(
                    file_name=file_name,
                    source=source if isinstance(source, str) else bytes(source),
                )
            )
        else:
            raise ProvisionError(f"build output[{index}] has unknown type {kind!r}")
    return items


def _artifact_for(item: OutputItem) -> Artifact:
    if isinstance(item, OutputChunk):
        return Artifact(content=item.code.encode("utf-8"), textual=True)
    if isinstance(item.source, str):
        return Artifact(content=item.source.encode("utf-8"), textual=True)
    return Artifact(content=bytes(item.source), textual=False)


__all__ = [
    "Artifact",
    "ArtifactMap",
    "BuildResult",
    "OutputAsset",
    "OutputChunk",
    "OutputItem",
    "WATCHER_RESULT_MESSAGE",
    "flatten_build_output",
    "normalize_served_path",
]

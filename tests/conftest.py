"""
asc-bridge — shared test fixtures

Purpose
- Provide a throwaway AssemblyScript project layout with a fake ``asc`` executable.

Functional requirements
- Offline; the fake compiler is a small Python script run through the real
  subprocess path so the invoker is exercised end to end.
"""

from __future__ import annotations

import stat
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

from asc_bridge.config.project import ProjectConfig

ENTRY_SOURCE = "export function add(a: i32, b: i32): i32 {\n  return a + b;\n}\n"

_FAKE_ASC = """#!@PYTHON@
import sys
from pathlib import Path

root = Path(__file__).resolve().parents[2]
args = sys.argv[1:]
mode = args[args.index("--target") + 1]
with (root / "invocations.log").open("a", encoding="utf-8") as log:
    log.write(" ".join([mode, *args]) + "\\n")

exit_file = root / "fake-asc-exit"
if exit_file.exists():
    for index in range(25):
        sys.stderr.write("ERROR AS%03d: broken line %d\\n" % (index, index))
    sys.exit(int(exit_file.read_text().strip()))

out = root / "build" / "assembly.wasm"
out.parent.mkdir(parents=True, exist_ok=True)
out.write_bytes(b"\\0asm" + Path(args[0]).read_bytes())
if (root / "fake-asc-map").exists():
    (root / "build" / "assembly.wasm.map").write_text(
        '{"version":3,"mode":"%s"}' % mode, encoding="utf-8"
    )
print("compiled " + mode)
"""


@dataclass(slots=True)
class FakeProject:
    root: Path
    config: ProjectConfig

    def fail_next(self, exit_code: int = 1) -> None:
        (self.root / "fake-asc-exit").write_text(str(exit_code), encoding="utf-8")

    def succeed(self) -> None:
        (self.root / "fake-asc-exit").unlink(missing_ok=True)

    def emit_source_map(self) -> None:
        (self.root / "fake-asc-map").write_text("", encoding="utf-8")

    def invocations(self) -> list[str]:
        log_path = self.root / "invocations.log"
        if not log_path.exists():
            return []
        return log_path.read_text(encoding="utf-8").splitlines()

    @property
    def artifact(self) -> Path:
        return self.config.artifact_path


def write_fake_compiler(root: Path) -> Path:
    bin_dir = root / "node_modules" / ".bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    compiler = bin_dir / "asc"
    compiler.write_text(_FAKE_ASC.replace("@PYTHON@", sys.executable), encoding="utf-8")
    compiler.chmod(compiler.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return compiler


@pytest.fixture
def fake_project(tmp_path: Path) -> FakeProject:
    root = tmp_path / "engine"
    (root / "assembly").mkdir(parents=True)
    (root / "assembly" / "index.ts").write_text(ENTRY_SOURCE, encoding="utf-8")
    (root / "asconfig.json").write_text("{}\n", encoding="utf-8")
    write_fake_compiler(root)
    config = ProjectConfig(source_root=str(root), dist_root=str(tmp_path / "dist"))
    return FakeProject(root=root, config=config)

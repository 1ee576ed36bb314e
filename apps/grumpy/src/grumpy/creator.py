from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from grumpy.catalog import ProjectKind
from grumpy.errors import ProjectCreationError


def _eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


class ProjectCreator(Protocol):
    def create(self, project_dir: Path, kind: ProjectKind) -> None: ...


@dataclass(frozen=True)
class CargoCreator:
    """Creates the project skeleton with `cargo new`."""

    cargo: str = "cargo"
    extra_args: tuple[str, ...] = ()

    def argv(self, project_dir: Path, kind: ProjectKind) -> list[str]:
        flag = "--lib" if kind.creates_library else "--bin"
        return [self.cargo, "new", flag, *self.extra_args, str(project_dir)]

    def create(self, project_dir: Path, kind: ProjectKind) -> None:
        argv = self.argv(project_dir, kind)
        cwd = Path.cwd()
        _eprint(f"+ ({cwd}) {' '.join(argv)}")
        try:
            cp = subprocess.run(argv, cwd=str(cwd), text=True, check=False)
        except FileNotFoundError as exc:
            raise ProjectCreationError(
                f"Command not found: {self.cargo!r}. Install a Rust toolchain or set `cargo` in the grumpy config.",
                exit_code=127,
            ) from exc
        except OSError as exc:
            raise ProjectCreationError(f"Failed to execute {self.cargo!r}: {exc}") from exc
        if cp.returncode != 0:
            raise ProjectCreationError(f"cargo new failed ({cp.returncode})", exit_code=cp.returncode)

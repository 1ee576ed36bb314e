from __future__ import annotations

from pathlib import Path

import pytest

from grumpy.catalog import CARGO_NEW_STUB, ProjectKind
from grumpy.errors import ProjectCreationError

CARGO_NEW_MANIFEST = """\
[package]
name = "{name}"
version = "0.1.0"
edition = "2021"

[dependencies]
"""

CARGO_NEW_LIB = """\
pub fn add(left: u64, right: u64) -> u64 {
    left + right
}
"""


class FakeCargo:
    """Stands in for `cargo new`: writes the files it would, without a Rust toolchain."""

    def __init__(self, *, fail_with: int | None = None, write_manifest: bool = True) -> None:
        self.fail_with = fail_with
        self.write_manifest = write_manifest
        self.calls: list[tuple[Path, ProjectKind]] = []

    def create(self, project_dir: Path, kind: ProjectKind) -> None:
        self.calls.append((project_dir, kind))
        if self.fail_with is not None:
            raise ProjectCreationError(f"cargo new failed ({self.fail_with})", exit_code=self.fail_with)
        src = project_dir / "src"
        src.mkdir(parents=True)
        if self.write_manifest:
            (project_dir / "Cargo.toml").write_text(
                CARGO_NEW_MANIFEST.format(name=project_dir.name), encoding="utf-8"
            )
        if kind.creates_library:
            (src / "lib.rs").write_text(CARGO_NEW_LIB, encoding="utf-8")
        else:
            (src / "main.rs").write_text(CARGO_NEW_STUB, encoding="utf-8")


@pytest.fixture(autouse=True)
def _isolate_user_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests independent of the developer's grumpy config and cargo."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.delenv("GRUMPY_CONFIG", raising=False)
    monkeypatch.delenv("CARGO", raising=False)


@pytest.fixture
def fake_cargo() -> FakeCargo:
    return FakeCargo()


@pytest.fixture
def make_fake_cargo():
    return FakeCargo

"""
Built-in conventions applied to every project.

Everything here is static data: the harness source, the stub `cargo new` writes, and the manifest additions for each
project kind. None of it is configurable at runtime.
"""

from __future__ import annotations

from enum import Enum

from cargo_manifest import AdditionSpec, Integer, String

HARNESS_SOURCE = """\
use anyhow::Error;

fn run() -> Result<(), Error> {
    println!("Hello, world!");

    Ok(())
}

fn main() -> Result<(), Error> {
    run()?;
    Ok(())
}
"""

# What `cargo new --bin` puts in src/main.rs. It is replaced by the harness rather than treated as user code.
CARGO_NEW_STUB = """\
fn main() {
    println!("Hello, world!");
}
"""

MANIFEST_FILE = "Cargo.toml"
DEFAULT_SCRIPT_NAME = "main"
CONVENTIONS_VERSION = 1

DEPENDENCIES_SECTION = ("dependencies",)
METADATA_SECTION = ("package", "metadata", "grumpy")
BIN_SECTION = ("bin",)

LIBRARY_DEPENDENCIES: tuple[tuple[str, str], ...] = (
    ("fehler", "1.0"),
    ("anyhow", "1.0"),
    ("thiserror", "1.0"),
    ("log", "0.4"),
)
EXECUTABLE_DEPENDENCIES: tuple[tuple[str, str], ...] = LIBRARY_DEPENDENCIES + (("log4rs", "0.8"),)


class ProjectKind(str, Enum):
    BIN = "bin"
    LIB = "lib"
    MIXED = "mixed"

    @property
    def creates_library(self) -> bool:
        return self is not ProjectKind.BIN

    @property
    def has_harness(self) -> bool:
        return self is not ProjectKind.LIB


def dependencies_for(kind: ProjectKind) -> tuple[tuple[str, str], ...]:
    return EXECUTABLE_DEPENDENCIES if kind.has_harness else LIBRARY_DEPENDENCIES


def harness_relpath(kind: ProjectKind, script_name: str) -> str | None:
    if kind is ProjectKind.BIN:
        return "src/main.rs"
    if kind is ProjectKind.MIXED:
        return f"src/bin/{script_name}.rs"
    return None


def additions_for(
    kind: ProjectKind,
    *,
    bin_name: str | None = None,
    bin_path: str | None = None,
) -> tuple[AdditionSpec, ...]:
    """Return the ordered manifest additions for a project of `kind`."""
    specs: list[AdditionSpec] = [AdditionSpec.ensure_section(DEPENDENCIES_SECTION)]
    for name, requirement in dependencies_for(kind):
        specs.append(AdditionSpec.ensure_key(DEPENDENCIES_SECTION, name, String(requirement), canonical_names=True))

    specs.append(AdditionSpec.ensure_section(METADATA_SECTION))
    specs.append(AdditionSpec.ensure_key(METADATA_SECTION, "conventions", Integer(CONVENTIONS_VERSION)))

    if kind.has_harness:
        if not bin_name or not bin_path:
            raise ValueError(f"{kind.value} projects need a binary target name and path")
        specs.append(
            AdditionSpec.ensure_array_entry(
                BIN_SECTION,
                identity_key="name",
                entry=(("name", String(bin_name)), ("path", String(bin_path))),
            )
        )
    return tuple(specs)

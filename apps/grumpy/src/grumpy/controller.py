"""
One augmentation run over one project directory.

States advance `start -> created|already_exists -> parsed -> augmented -> harness_written -> manifest_written -> done`.
The first error moves the run to `failed` and is re-raised. Completed steps are not rolled back; re-running the same
request picks up where the failed run stopped.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from cargo_manifest import (
    AdditionSpec,
    ManifestDocument,
    ManifestError,
    String,
    augment,
    parse_manifest,
    serialize_manifest,
)
from cargo_manifest.parser import decode_manifest

from grumpy.catalog import (
    CARGO_NEW_STUB,
    DEFAULT_SCRIPT_NAME,
    HARNESS_SOURCE,
    MANIFEST_FILE,
    ProjectKind,
    additions_for,
    harness_relpath,
)
from grumpy.creator import ProjectCreator
from grumpy.errors import (
    GrumpyError,
    HarnessWriteConflict,
    ManifestIOError,
    ProjectCreationError,
    UsageError,
)


class RunState(str, Enum):
    START = "start"
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    PARSED = "parsed"
    AUGMENTED = "augmented"
    HARNESS_WRITTEN = "harness_written"
    MANIFEST_WRITTEN = "manifest_written"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RunRequest:
    project_dir: Path
    # None means "detect from the existing project".
    kind: ProjectKind | None = None
    script_name: str = DEFAULT_SCRIPT_NAME
    create_missing: bool = True


@dataclass
class RunReport:
    project_dir: Path
    states: list[RunState] = field(default_factory=lambda: [RunState.START])
    kind: ProjectKind | None = None
    applied: tuple[AdditionSpec, ...] = ()
    harness_path: Path | None = None
    harness_written: bool = False
    manifest_written: bool = False
    failure: str | None = None

    @property
    def state(self) -> RunState:
        return self.states[-1]

    @property
    def created(self) -> bool:
        return RunState.CREATED in self.states

    def advance(self, state: RunState) -> None:
        self.states.append(state)


def _validate_script_name(name: str) -> str:
    name = name.strip()
    if name.endswith(".rs"):
        name = name[: -len(".rs")]
    if not name:
        raise UsageError("Script name must not be empty.")
    if name in {".", ".."}:
        raise UsageError("Script name must not be '.' or '..'.")
    if "\x00" in name:
        raise UsageError("Script name must not contain NUL bytes.")
    seps = {"/", "\\"}
    if os.path.sep:
        seps.add(os.path.sep)
    if os.path.altsep:
        seps.add(os.path.altsep)
    if any(sep in name for sep in seps):
        raise UsageError("Script name must not contain path separators.")
    return name


def detect_kind(project_dir: Path) -> ProjectKind:
    """Projects with a `src/lib.rs` take scripts under `src/bin/`; others are binary projects."""
    if (project_dir / "src" / "lib.rs").exists():
        return ProjectKind.MIXED
    return ProjectKind.BIN


def _normalize_source(text: str) -> str:
    return text.replace("\r\n", "\n").strip()


def _package_name(document: ManifestDocument, project_dir: Path) -> str:
    package = document.section(("package",))
    name = package.get("name") if package is not None else None
    if isinstance(name, String) and name.value:
        return name.value
    return project_dir.name


def read_manifest(path: Path) -> tuple[str, ManifestDocument]:
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise ManifestIOError(path, "manifest not found") from e
    except OSError as e:
        raise ManifestIOError(path, f"failed to read manifest: {e}") from e
    text = decode_manifest(data, source=str(path))
    return text, parse_manifest(text, source=str(path))


def write_harness(path: Path) -> bool:
    """
    Write the harness to `path`.

    Returns False when the file already holds the harness. Empty files and the stub `cargo new` generates are
    replaced; any other content raises `HarnessWriteConflict`.
    """

    if path.is_dir():
        raise HarnessWriteConflict(path, "a directory exists at that path")
    if path.exists():
        try:
            existing = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise HarnessWriteConflict(path, "it holds non-UTF-8 content") from e
        except OSError as e:
            raise ManifestIOError(path, f"failed to read harness: {e}") from e
        normalized = _normalize_source(existing)
        if normalized == _normalize_source(HARNESS_SOURCE):
            return False
        if normalized and normalized != _normalize_source(CARGO_NEW_STUB):
            raise HarnessWriteConflict(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(HARNESS_SOURCE, encoding="utf-8", newline="\n")
    except OSError as e:
        raise ManifestIOError(path, f"failed to write harness: {e}") from e
    return True


class ProjectController:
    def __init__(self, creator: ProjectCreator) -> None:
        self.creator = creator
        self.report: RunReport | None = None

    def run(self, request: RunRequest) -> RunReport:
        report = RunReport(project_dir=request.project_dir)
        self.report = report
        try:
            self._run(request, report)
        except (GrumpyError, ManifestError) as exc:
            report.failure = str(exc)
            report.advance(RunState.FAILED)
            raise
        return report

    def _run(self, request: RunRequest, report: RunReport) -> None:
        project_dir = request.project_dir
        script_name = _validate_script_name(request.script_name)
        manifest_path = project_dir / MANIFEST_FILE

        if project_dir.exists():
            if not project_dir.is_dir():
                raise UsageError(f"Not a directory: {project_dir}")
            report.advance(RunState.ALREADY_EXISTS)
        else:
            if not request.create_missing:
                raise UsageError(f"Project directory does not exist: {project_dir}")
            if request.kind is None:
                raise UsageError("A project kind is required to create a new project.")
            self.creator.create(project_dir, request.kind)
            if not manifest_path.exists():
                raise ProjectCreationError(f"Project creation finished but {manifest_path} is missing.")
            report.advance(RunState.CREATED)

        kind = request.kind if request.kind is not None else detect_kind(project_dir)
        report.kind = kind

        original, document = read_manifest(manifest_path)
        report.advance(RunState.PARSED)
        if document.section(("package",)) is None:
            raise UsageError(
                f"{manifest_path} has no [package] table; workspace-only manifests cannot hold the harness target."
            )

        relpath = harness_relpath(kind, script_name)
        if kind is ProjectKind.BIN:
            specs = additions_for(kind, bin_name=_package_name(document, project_dir), bin_path=relpath)
        elif kind is ProjectKind.MIXED:
            specs = additions_for(kind, bin_name=script_name, bin_path=relpath)
        else:
            specs = additions_for(kind)
        result = augment(document, specs)
        report.applied = result.applied
        report.advance(RunState.AUGMENTED)

        # Serialized before the harness is touched: an unrepresentable value fails the run with nothing written.
        text = serialize_manifest(document)

        if relpath is not None:
            report.harness_path = project_dir / relpath
            report.harness_written = write_harness(report.harness_path)
        report.advance(RunState.HARNESS_WRITTEN)

        if text != original:
            try:
                manifest_path.write_text(text, encoding="utf-8", newline="")
            except OSError as e:
                raise ManifestIOError(manifest_path, f"failed to write manifest: {e}") from e
            report.manifest_written = True
        report.advance(RunState.MANIFEST_WRITTEN)
        report.advance(RunState.DONE)

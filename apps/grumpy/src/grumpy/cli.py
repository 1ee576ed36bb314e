"""
grumpy: start every Cargo project from the same baseline.

`grumpy new` runs `cargo new`, installs the executable harness and merges the standard dependencies into
Cargo.toml. `grumpy add` adds another executable script to an existing project. Both are safe to re-run.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from cargo_manifest import ManifestError

from grumpy.catalog import DEFAULT_SCRIPT_NAME, ProjectKind
from grumpy.config import GrumpyConfig, load_config
from grumpy.controller import ProjectController, RunReport, RunRequest, detect_kind
from grumpy.creator import CargoCreator, ProjectCreator
from grumpy.errors import GrumpyError, UsageError


def _eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def _make_creator(config: GrumpyConfig) -> ProjectCreator:
    return CargoCreator(cargo=config.cargo_command(), extra_args=config.cargo_new_args)


def _display_path(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


def _print_report(report: RunReport) -> None:
    if report.created:
        print(f"Created {report.kind.value if report.kind else ''} project at {_display_path(report.project_dir)}")
    if report.applied:
        print("Updated Cargo.toml:")
        for spec in report.applied:
            print(f"+ {spec.describe()}")
    if report.harness_written and report.harness_path is not None:
        print(f"Wrote {_display_path(report.harness_path)}")
    if not (report.created or report.applied or report.harness_written):
        print("Nothing to do (already up to date).")


def _run(request: RunRequest, config: GrumpyConfig) -> int:
    controller = ProjectController(_make_creator(config))
    report = controller.run(request)
    _print_report(report)
    return 0


def cmd_new(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    name = args.project_name.strip()
    if not name:
        raise UsageError("Project name must not be empty.")

    if args.bin_only:
        kind = ProjectKind.BIN
    elif args.lib_only:
        kind = ProjectKind.LIB
    else:
        kind = ProjectKind.MIXED

    request = RunRequest(
        project_dir=Path.cwd() / name,
        kind=kind,
        script_name=args.script_name or config.script_name,
    )
    return _run(request, config)


def cmd_add(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    cwd = Path.cwd()
    inside_project = (cwd / "src").is_dir()
    if inside_project and args.project_name:
        raise UsageError("Specified a project name but appear to be inside a project already.")
    if not inside_project and not args.project_name:
        raise UsageError("No project name specified (and the current directory has no src/).")

    project_dir = cwd if inside_project else cwd / args.project_name
    if project_dir.is_dir() and detect_kind(project_dir) is ProjectKind.BIN and args.script_name != DEFAULT_SCRIPT_NAME:
        _eprint(
            f"WARNING: {project_dir.name} is a binary-only project; "
            f"the harness goes to src/main.rs and script name {args.script_name!r} is ignored."
        )
    request = RunRequest(project_dir=project_dir, script_name=args.script_name, create_missing=False)
    return _run(request, config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grumpy",
        description="Automate standard Cargo project creation and maintenance.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML config file (default: $GRUMPY_CONFIG, then ~/.config/grumpy/config.yaml).",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_new = sub.add_parser("new", help="Create a new project.")
    p_new.add_argument("project_name", help="Name (or path) of the project directory.")
    kind = p_new.add_mutually_exclusive_group()
    kind.add_argument("-b", "--bin", dest="bin_only", action="store_true", help="Create a binary-only project.")
    kind.add_argument("-l", "--lib", dest="lib_only", action="store_true", help="Create a library-only project.")
    p_new.add_argument(
        "-s",
        "--script-name",
        help="What to call the executable script in library projects (default: main).",
    )
    p_new.set_defaults(func=cmd_new)

    p_add = sub.add_parser("add", help="Add a new executable script to an existing project.")
    p_add.add_argument("script_name", help="What to call the executable script.")
    p_add.add_argument("-p", "--project", dest="project_name", help="Project directory when not run inside it.")
    p_add.set_defaults(func=cmd_add)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except GrumpyError as exc:
        _eprint(f"ERROR: {exc}")
        return exc.exit_code
    except ManifestError as exc:
        _eprint(f"ERROR: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

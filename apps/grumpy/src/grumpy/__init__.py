from grumpy.catalog import ProjectKind, additions_for
from grumpy.controller import ProjectController, RunReport, RunRequest, RunState
from grumpy.creator import CargoCreator
from grumpy.errors import (
    ConfigError,
    GrumpyError,
    HarnessWriteConflict,
    ManifestIOError,
    ProjectCreationError,
    UsageError,
)

__all__ = [
    "CargoCreator",
    "ConfigError",
    "GrumpyError",
    "HarnessWriteConflict",
    "ManifestIOError",
    "ProjectController",
    "ProjectCreationError",
    "ProjectKind",
    "RunReport",
    "RunRequest",
    "RunState",
    "UsageError",
    "additions_for",
]

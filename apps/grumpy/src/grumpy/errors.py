from __future__ import annotations

from pathlib import Path


class GrumpyError(RuntimeError):
    exit_code = 2


class UsageError(GrumpyError):
    pass


class ConfigError(GrumpyError):
    pass


class ManifestIOError(GrumpyError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class HarnessWriteConflict(GrumpyError):
    def __init__(self, path: Path, reason: str = "it already contains code that is not the grumpy harness") -> None:
        super().__init__(f"Not overwriting {path}: {reason}. Move it aside or delete it, then re-run.")
        self.path = path
        self.reason = reason


class ProjectCreationError(GrumpyError):
    def __init__(self, message: str, *, exit_code: int = 2) -> None:
        super().__init__(message)
        self.exit_code = exit_code

from __future__ import annotations


class ManifestError(RuntimeError):
    pass


class MalformedManifest(ManifestError):
    def __init__(self, reason: str, *, line: int, column: int, source: str | None = None) -> None:
        where = f"{source}: " if source else ""
        super().__init__(f"{where}line {line}, column {column}: {reason}")
        self.reason = reason
        self.line = line
        self.column = column
        self.source = source


class UnserializableValue(ManifestError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot serialize {path}: {reason}")
        self.path = path
        self.reason = reason


class ConflictingManifestEntry(ManifestError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"conflicting manifest entry at {path}: {reason}")
        self.path = path
        self.reason = reason

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Union

import tomlkit
from tomlkit.exceptions import ParseError

KeyPath = tuple[str, ...]


@dataclass(frozen=True)
class String:
    value: str
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Boolean:
    value: bool
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Integer:
    value: int
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Array:
    items: tuple[Value, ...] = ()
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class InlineTable:
    entries: tuple[tuple[str, Value], ...] = ()
    raw: str | None = field(default=None, compare=False, repr=False)

    def get(self, key: str) -> Value | None:
        for name, value in self.entries:
            if name == key:
                return value
        return None


@dataclass(frozen=True)
class Opaque:
    """A valid TOML literal kept verbatim (floats, date-times, multi-line strings)."""

    raw: str


Value = Union[String, Boolean, Integer, Array, InlineTable, Opaque]


def decode_literal(raw: str) -> Any:
    """Decode a single TOML literal with tomlkit, raising `ValueError` when it is not valid TOML."""
    try:
        doc = tomlkit.parse(f"value = {raw}\n")
    except ParseError as e:
        raise ValueError(f"invalid TOML literal {raw!r}: {e}") from e
    return doc["value"].unwrap()


def value_to_python(value: Value) -> Any:
    if isinstance(value, (String, Boolean, Integer)):
        return value.value
    if isinstance(value, Array):
        return [value_to_python(item) for item in value.items]
    if isinstance(value, InlineTable):
        return {key: value_to_python(item) for key, item in value.entries}
    if isinstance(value, Opaque):
        return decode_literal(value.raw)
    raise TypeError(f"Unsupported manifest value: {type(value).__name__}")


@dataclass
class Entry:
    key: KeyPath
    value: Value
    # Source text kept for round-trips; none of it takes part in equality.
    raw_key: str | None = field(default=None, compare=False, repr=False)
    separator: str = field(default=" = ", compare=False, repr=False)
    comment: str = field(default="", compare=False, repr=False)
    trail: str | None = field(default=None, compare=False, repr=False)
    leading: list[str] = field(default_factory=list, compare=False, repr=False)

    @property
    def name(self) -> str:
        return self.key[0]


@dataclass
class Section:
    path: KeyPath
    is_array: bool = False
    entries: list[Entry] = field(default_factory=list)
    raw_header: str | None = field(default=None, compare=False, repr=False)
    header_comment: str = field(default="", compare=False, repr=False)
    header_trail: str | None = field(default=None, compare=False, repr=False)
    leading: list[str] = field(default_factory=list, compare=False, repr=False)

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    def find(self, name: str) -> Entry | None:
        """Return the entry occupying `name`, including dotted keys such as `name.workspace`."""
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def get(self, name: str) -> Value | None:
        for entry in self.entries:
            if entry.key == (name,):
                return entry.value
        return None

    def append(self, key: str, value: Value) -> Entry:
        entry = Entry(key=(key,), value=value)
        self.entries.append(entry)
        return entry


@dataclass
class ManifestDocument:
    root: Section = field(default_factory=lambda: Section(path=()))
    sections: list[Section] = field(default_factory=list)
    trailing: list[str] = field(default_factory=list, compare=False, repr=False)
    newline: str = field(default="\n", compare=False, repr=False)

    def section(self, path: KeyPath) -> Section | None:
        """Return the plain table at `path` (the root table for `()`), or None."""
        if not path:
            return self.root
        for section in self.sections:
            if section.path == path and not section.is_array:
                return section
        return None

    def array(self, path: KeyPath) -> list[Section]:
        return [s for s in self.sections if s.path == path and s.is_array]

    def has_subtable(self, path: KeyPath) -> bool:
        """True when a header at or below `path` exists, e.g. `[dependencies.serde]`."""
        n = len(path)
        return any(s.path[:n] == path for s in self.sections)

    def subtree_end(self, index: int) -> int:
        """Index just past the section at `index` and the run of sections nested under it."""
        path = self.sections[index].path
        n = len(path)
        end = index + 1
        while end < len(self.sections):
            candidate = self.sections[end].path
            if len(candidate) <= n or candidate[:n] != path:
                break
            end += 1
        return end

    def insert_section(self, index: int, section: Section) -> None:
        if index >= len(self.sections):
            self.append_section(section)
            return
        if not section.leading:
            section.leading = [self.newline]
        self.sections.insert(index, section)

    def append_section(self, section: Section) -> None:
        # Trailing trivia stays ahead of anything appended so the existing text keeps its order.
        leading = list(self.trailing)
        has_content = bool(self.sections or self.root.entries or leading)
        if has_content and (not leading or leading[-1].strip()):
            leading.append(self.newline)
        section.leading = leading + section.leading
        self.trailing = []
        self.sections.append(section)

    def replace_with(self, other: ManifestDocument) -> None:
        self.root = other.root
        self.sections = other.sections
        self.trailing = other.trailing
        self.newline = other.newline

    def copy(self) -> ManifestDocument:
        return copy.deepcopy(self)

    def to_python(self) -> dict[str, Any]:
        """Return the document as plain Python data, shaped like `tomllib.loads` output."""
        out: dict[str, Any] = {}
        _merge_entries(out, self.root.entries)
        for section in self.sections:
            table = _descend(out, section.path[:-1])
            leaf = section.path[-1]
            if section.is_array:
                target: dict[str, Any] = {}
                table.setdefault(leaf, []).append(target)
            else:
                target = _descend(table, (leaf,))
            _merge_entries(target, section.entries)
        return out


def _descend(table: dict[str, Any], path: KeyPath) -> dict[str, Any]:
    for part in path:
        child = table.setdefault(part, {})
        if isinstance(child, list):
            child = child[-1]
        table = child
    return table


def _merge_entries(table: dict[str, Any], entries: list[Entry]) -> None:
    for entry in entries:
        target = _descend(table, entry.key[:-1])
        target[entry.key[-1]] = value_to_python(entry.value)

"""
Cargo.toml parser.

The text is checked against TOML 1.0 with `tomllib`, then parsed with tomlkit and its format-preserving tree is walked
into a `ManifestDocument`. Comments, blank lines and the original source text of keys, headers and values come from
tomlkit's trivia, so an unmodified document serializes back to the same text. Literals the model does not interpret
(floats, date-times, multi-line strings) are kept as `Opaque` values.
"""

from __future__ import annotations

import re
import tomllib
from collections.abc import Mapping
from typing import Any

import tomlkit
from tomlkit.container import Container
from tomlkit.exceptions import ParseError, TOMLKitError
from tomlkit.items import AoT, Bool, Key, Table
from tomlkit.items import Array as TomlArray
from tomlkit.items import InlineTable as TomlInlineTable
from tomlkit.items import Integer as TomlInteger
from tomlkit.items import String as TomlString

from cargo_manifest.errors import MalformedManifest
from cargo_manifest.model import (
    Array,
    Boolean,
    Entry,
    InlineTable,
    Integer,
    KeyPath,
    ManifestDocument,
    Opaque,
    Section,
    String,
    Value,
)
from cargo_manifest.serializer import format_key_path

_TOMLLIB_ERROR_RE = re.compile(
    r"^(?P<reason>.*) \(at (?:line (?P<line>\d+), column (?P<column>\d+)|end of document)\)$",
    re.DOTALL,
)
_TOMLKIT_POSITION_RE = re.compile(r" at line \d+ col \d+$")

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _position(text: str, offset: int) -> tuple[int, int]:
    offset = min(max(offset, 0), len(text))
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


def decode_manifest(data: bytes, *, source: str | None = None) -> str:
    """Decode manifest bytes as UTF-8 (dropping a byte-order mark), reporting bad bytes as `MalformedManifest`."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line = data.count(b"\n", 0, exc.start) + 1
        column = exc.start - (data.rfind(b"\n", 0, exc.start) + 1) + 1
        raise MalformedManifest("invalid UTF-8", line=line, column=column, source=source) from exc
    return text.removeprefix("\ufeff")


def _check_toml(text: str, *, source: str | None) -> None:
    """Check the text against TOML 1.0, reporting the first error with its position."""
    try:
        tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        lineno = getattr(exc, "lineno", None)
        if lineno is not None:
            raise MalformedManifest(exc.msg, line=lineno, column=exc.colno, source=source) from exc
        m = _TOMLLIB_ERROR_RE.match(str(exc))
        if m is None:
            line, column = _position(text, len(text))
            raise MalformedManifest(str(exc), line=line, column=column, source=source) from exc
        if m.group("line") is None:
            line, column = _position(text, len(text))
        else:
            line, column = int(m.group("line")), int(m.group("column"))
        raise MalformedManifest(m.group("reason"), line=line, column=column, source=source) from exc


def parse_manifest(text: str, *, source: str | None = None) -> ManifestDocument:
    """Parse manifest text, raising `MalformedManifest` with line/column (and `source`, if given) on invalid input."""
    _check_toml(text, source=source)
    try:
        parsed = tomlkit.parse(text)
    except ParseError as exc:
        reason = _TOMLKIT_POSITION_RE.sub("", str(exc))
        raise MalformedManifest(reason, line=exc.line, column=exc.col + 1, source=source) from exc
    except TOMLKitError as exc:
        line, column = _position(text, len(text))
        raise MalformedManifest(str(exc), line=line, column=column, source=source) from exc
    return _DocumentBuilder(text, source=source).build(parsed)


def _key_parts(key: Key) -> KeyPath:
    return tuple(part.key for part in key)


def _convert(item: Any) -> Value:
    if isinstance(item, Mapping):
        raw = item.as_string() if isinstance(item, TomlInlineTable) else None
        return InlineTable(tuple((str(k), _convert(v)) for k, v in item.items()), raw=raw)
    # Containers hand booleans back as plain `bool`.
    if isinstance(item, bool):
        return Boolean(item)
    raw = item.as_string()
    if isinstance(item, Bool):
        return Boolean(bool(item.value), raw=raw)
    if isinstance(item, TomlInteger):
        number = int(item)
        if not _INT64_MIN <= number <= _INT64_MAX:
            raise ValueError(f"integer {raw} does not fit in 64 bits")
        return Integer(number, raw=raw)
    if isinstance(item, TomlString) and not raw.startswith(('"""', "'''")):
        return String(item.unwrap(), raw=raw)
    if isinstance(item, TomlArray):
        return Array(tuple(_convert(v) for v in item), raw=raw)
    return Opaque(raw)


class _DocumentBuilder:
    """
    Walk a tomlkit document in source order.

    tomlkit nests child tables inside their parents and wraps implicit parents (`[a.b]` without `[a]`) and dotted keys
    (`a.b = 1`) in super tables. The walk flattens that back into one `Section` per header, in the order the headers
    appear. Blank lines and comment lines collect in `pending` until the next key or header claims them as leading
    trivia; whatever is left at the end becomes the document's trailing trivia.
    """

    def __init__(self, text: str, *, source: str | None = None) -> None:
        self.text = text
        self.source = source
        self.offset = 0
        self.pending: list[str] = []
        self.doc = ManifestDocument(newline="\r\n" if "\r\n" in text else "\n")

    def build(self, parsed: Container) -> ManifestDocument:
        self._walk(parsed, (), self.doc.root)
        self.doc.trailing = self.pending
        self.pending = []
        return self.doc

    def _take_leading(self) -> list[str]:
        leading, self.pending = self.pending, []
        return leading

    def _trivia(self, chunk: str) -> None:
        self.pending.append(chunk)
        self.offset += len(chunk)

    def _walk(self, container: Container, path: KeyPath, section: Section) -> None:
        for key, item in container.body:
            if key is None:
                self._trivia(item.as_string())
            elif isinstance(item, AoT):
                for element in item.body:
                    self._open_table(path + _key_parts(key), element, is_array=True)
            elif isinstance(item, Table) and item.is_super_table():
                if key.is_dotted():
                    self._walk_dotted(item.value, section, _key_parts(key), key.as_string())
                else:
                    self._walk(item.value, path + _key_parts(key), section)
            elif isinstance(item, Table):
                self._open_table(path + _key_parts(key), item, is_array=False)
            else:
                self._add_entry(section, _key_parts(key), key.as_string(), key.sep, item)

    def _walk_dotted(self, container: Container, section: Section, prefix: KeyPath, prefix_text: str) -> None:
        for key, item in container.body:
            if key is None:
                self._trivia(item.as_string())
            elif isinstance(item, Table):
                self._walk_dotted(item.value, section, prefix + _key_parts(key), f"{prefix_text}.{key.as_string()}")
            else:
                self._add_entry(section, prefix + _key_parts(key), f"{prefix_text}.{key.as_string()}", key.sep, item)

    def _open_table(self, path: KeyPath, table: Table, *, is_array: bool) -> None:
        trivia = table.trivia
        name = table.display_name if table.display_name is not None else format_key_path(path)
        raw_header = f"{trivia.indent}[[{name}]]" if is_array else f"{trivia.indent}[{name}]"
        section = Section(
            path=path,
            is_array=is_array,
            raw_header=raw_header,
            header_comment=trivia.comment_ws + trivia.comment,
            header_trail=trivia.trail,
            leading=self._take_leading(),
        )
        self.offset += len(raw_header) + len(section.header_comment) + len(trivia.trail)
        self.doc.sections.append(section)
        self._walk(table.value, path, section)

    def _add_entry(self, section: Section, key: KeyPath, key_text: str, separator: str, item: Any) -> None:
        trivia = item.trivia
        raw_key = trivia.indent + key_text
        value_start = self.offset + len(raw_key) + len(separator)
        try:
            value = _convert(item)
        except ValueError as exc:
            line, column = _position(self.text, value_start)
            raise MalformedManifest(str(exc), line=line, column=column, source=self.source) from None
        entry = Entry(
            key=key,
            value=value,
            raw_key=raw_key,
            separator=separator,
            comment=trivia.comment_ws + trivia.comment,
            trail=trivia.trail,
            leading=self._take_leading(),
        )
        section.entries.append(entry)
        self.offset = value_start + len(item.as_string()) + len(entry.comment) + len(trivia.trail)

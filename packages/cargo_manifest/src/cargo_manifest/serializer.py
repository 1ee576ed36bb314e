from __future__ import annotations

import re

from cargo_manifest.errors import UnserializableValue
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

_TOML_BARE_KEY_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _toml_quote_string(value: str, *, where: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise UnserializableValue(where, "string is not valid UTF-8") from exc
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\b":
            out.append("\\b")
        elif ch == "\f":
            out.append("\\f")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def format_key(key: str) -> str:
    """Format a TOML key, quoting it only when required."""
    if _TOML_BARE_KEY_RE.match(key):
        return key
    return _toml_quote_string(key, where=repr(key))


def format_key_path(path: KeyPath) -> str:
    return ".".join(format_key(part) for part in path)


def format_value(value: Value, *, where: str) -> str:
    """Render a value, reusing its original source text when it has one."""
    if isinstance(value, Opaque):
        return value.raw
    raw = getattr(value, "raw", None)
    if isinstance(raw, str):
        return raw
    if isinstance(value, Boolean):
        return "true" if value.value else "false"
    if isinstance(value, Integer):
        if isinstance(value.value, bool) or not isinstance(value.value, int):
            raise UnserializableValue(where, f"integer value has type {type(value.value).__name__}")
        if not _INT64_MIN <= value.value <= _INT64_MAX:
            raise UnserializableValue(where, f"integer {value.value} does not fit in 64 bits")
        return str(value.value)
    if isinstance(value, String):
        if not isinstance(value.value, str):
            raise UnserializableValue(where, f"string value has type {type(value.value).__name__}")
        return _toml_quote_string(value.value, where=where)
    if isinstance(value, Array):
        return "[" + ", ".join(format_value(v, where=f"{where}[{i}]") for i, v in enumerate(value.items)) + "]"
    if isinstance(value, InlineTable):
        if not value.entries:
            return "{}"
        inner_parts: list[str] = []
        for k, v in value.entries:
            if not isinstance(k, str):
                raise UnserializableValue(where, f"inline table key has type {type(k).__name__}")
            inner_parts.append(f"{format_key(k)} = {format_value(v, where=f'{where}.{k}')}")
        return "{ " + ", ".join(inner_parts) + " }"
    raise UnserializableValue(where, f"unsupported value type {type(value).__name__}")


def _format_entry(entry: Entry, section: Section, newline: str) -> str:
    where = ".".join(section.path + entry.key)
    key = entry.raw_key if entry.raw_key is not None else format_key_path(entry.key)
    trail = entry.trail if entry.trail is not None else newline
    return f"{key}{entry.separator}{format_value(entry.value, where=where)}{entry.comment}{trail}"


def _format_header(section: Section, newline: str) -> str:
    trail = section.header_trail if section.header_trail is not None else newline
    if section.raw_header is not None:
        return section.raw_header + section.header_comment + trail
    name = format_key_path(section.path)
    header = f"[[{name}]]" if section.is_array else f"[{name}]"
    return header + section.header_comment + trail


def serialize_manifest(document: ManifestDocument) -> str:
    """
    Render a document to manifest text.

    The whole text is built in memory; `UnserializableValue` is raised before anything is returned, so callers never
    see a partial rendering.
    """

    chunks: list[str] = []
    newline = document.newline

    def emit(chunk: str) -> None:
        if not chunk:
            return
        # A statement appended after a last line that had no newline starts on a line of its own.
        if chunks and not chunks[-1].endswith("\n"):
            chunks.append(newline)
        chunks.append(chunk)

    for entry in document.root.entries:
        for trivia in entry.leading:
            emit(trivia)
        emit(_format_entry(entry, document.root, newline))
    for section in document.sections:
        for trivia in section.leading:
            emit(trivia)
        emit(_format_header(section, newline))
        for entry in section.entries:
            for trivia in entry.leading:
                emit(trivia)
            emit(_format_entry(entry, section, newline))
    for trivia in document.trailing:
        emit(trivia)
    return "".join(chunks)

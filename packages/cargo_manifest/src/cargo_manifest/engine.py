"""
Idempotent manifest augmentation.

`augment()` applies an ordered list of `AdditionSpec`s to a `ManifestDocument`. Every policy only ever adds: existing
keys, sections and table-array elements are left exactly as they are, so applying the same specs a second time is a
no-op. All specs run against a working copy that replaces the document's contents only when every spec succeeded; a
`ConflictingManifestEntry` therefore leaves the caller's document untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from packaging.utils import canonicalize_name

from cargo_manifest.errors import ConflictingManifestEntry
from cargo_manifest.model import (
    Array,
    Entry,
    InlineTable,
    KeyPath,
    ManifestDocument,
    Section,
    Value,
)
from cargo_manifest.serializer import format_value


class MergePolicy(str, Enum):
    ENSURE_KEY = "ensure-key"
    ENSURE_SECTION = "ensure-section"
    ENSURE_ARRAY_ENTRY = "ensure-array-entry"


@dataclass(frozen=True)
class AdditionSpec:
    policy: MergePolicy
    section: KeyPath
    key: str | None = None
    value: Value | None = None
    identity_key: str | None = None
    entry: tuple[tuple[str, Value], ...] = ()
    # Crate names are compared the way crates.io does: case-insensitive, `-` and `_` equivalent.
    canonical_names: bool = False

    @classmethod
    def ensure_key(cls, section: KeyPath, key: str, value: Value, *, canonical_names: bool = False) -> AdditionSpec:
        return cls(
            policy=MergePolicy.ENSURE_KEY,
            section=section,
            key=key,
            value=value,
            canonical_names=canonical_names,
        )

    @classmethod
    def ensure_section(cls, section: KeyPath) -> AdditionSpec:
        return cls(policy=MergePolicy.ENSURE_SECTION, section=section)

    @classmethod
    def ensure_array_entry(
        cls, section: KeyPath, *, identity_key: str, entry: tuple[tuple[str, Value], ...]
    ) -> AdditionSpec:
        if identity_key not in dict(entry):
            raise ValueError(f"entry for [[{'.'.join(section)}]] is missing its identity key {identity_key!r}")
        return cls(
            policy=MergePolicy.ENSURE_ARRAY_ENTRY,
            section=section,
            identity_key=identity_key,
            entry=entry,
        )

    @property
    def identity_value(self) -> Value | None:
        if self.identity_key is None:
            return None
        return dict(self.entry).get(self.identity_key)

    def describe(self) -> str:
        dotted = ".".join(self.section)
        if self.policy is MergePolicy.ENSURE_KEY:
            where = f"{dotted}.{self.key}" if dotted else str(self.key)
            assert self.value is not None
            return f"{where} = {format_value(self.value, where=where)}"
        if self.policy is MergePolicy.ENSURE_SECTION:
            return f"[{dotted}]"
        identity = self.identity_value
        assert identity is not None
        return f"[[{dotted}]] {self.identity_key} = {format_value(identity, where=dotted)}"


@dataclass(frozen=True)
class AugmentResult:
    applied: tuple[AdditionSpec, ...]

    @property
    def changed(self) -> bool:
        return bool(self.applied)


def augment(document: ManifestDocument, specs: list[AdditionSpec] | tuple[AdditionSpec, ...]) -> AugmentResult:
    """Apply `specs` in order, mutating `document` only if all of them succeed."""
    work = document.copy()
    applied: list[AdditionSpec] = []
    for spec in specs:
        if _apply(work, spec):
            applied.append(spec)
    if applied:
        document.replace_with(work)
    return AugmentResult(applied=tuple(applied))


def _apply(doc: ManifestDocument, spec: AdditionSpec) -> bool:
    if spec.policy is MergePolicy.ENSURE_SECTION:
        return _ensure_section(doc, spec.section)
    if spec.policy is MergePolicy.ENSURE_KEY:
        return _ensure_key(doc, spec)
    if spec.policy is MergePolicy.ENSURE_ARRAY_ENTRY:
        return _ensure_array_entry(doc, spec)
    raise ValueError(f"Unknown merge policy: {spec.policy!r}")


def _dotted(path: KeyPath) -> str:
    return ".".join(path)


def _check_not_value(doc: ManifestDocument, path: KeyPath) -> None:
    parent = doc.section(path[:-1])
    if parent is None:
        return
    entry = parent.find(path[-1])
    if entry is None:
        return
    if len(entry.key) == 1:
        raise ConflictingManifestEntry(_dotted(path), "a value is defined here, not a table")
    raise ConflictingManifestEntry(_dotted(path), f"defined by dotted key {_dotted(entry.key)!r}")


def _ensure_section(doc: ManifestDocument, path: KeyPath) -> bool:
    changed = False
    for depth in range(1, len(path) + 1):
        prefix = path[:depth]
        _check_not_value(doc, prefix)
        if doc.array(prefix):
            raise ConflictingManifestEntry(_dotted(prefix), "an array of tables is defined here, not a table")
        if doc.section(prefix) is not None:
            continue
        doc.insert_section(_insertion_index(doc, prefix[:-1]), Section(path=prefix))
        changed = True
    return changed


def _insertion_index(doc: ManifestDocument, parent: KeyPath) -> int:
    """New tables go after their parent's subtree; top-level tables go at the end."""
    if not parent:
        return len(doc.sections)
    for index, section in enumerate(doc.sections):
        if section.path == parent and not section.is_array:
            return doc.subtree_end(index)
    return len(doc.sections)


def _names_match(a: str, b: str, *, canonical: bool) -> bool:
    if canonical:
        return canonicalize_name(a) == canonicalize_name(b)
    return a == b


def _has_key(doc: ManifestDocument, section: Section, key: str, *, canonical: bool) -> bool:
    if any(_names_match(entry.name, key, canonical=canonical) for entry in section.entries):
        return True
    # `[dependencies.serde]` style tables also occupy the key.
    n = len(section.path)
    for other in doc.sections:
        if len(other.path) > n and other.path[:n] == section.path:
            if _names_match(other.path[n], key, canonical=canonical):
                return True
    return False


def _ensure_key(doc: ManifestDocument, spec: AdditionSpec) -> bool:
    assert spec.key is not None and spec.value is not None
    created = _ensure_section(doc, spec.section)
    section = doc.section(spec.section)
    assert section is not None
    if _has_key(doc, section, spec.key, canonical=spec.canonical_names):
        return created
    section.append(spec.key, spec.value)
    return True


def _inline_table_array(doc: ManifestDocument, path: KeyPath) -> Array | None:
    """Return the value at `path` when it is an array of tables written inline, e.g. `bin = [{ name = "x" }]`."""
    parent = doc.section(path[:-1])
    if parent is None:
        return None
    value = parent.get(path[-1])
    if isinstance(value, Array) and value.items and all(isinstance(item, InlineTable) for item in value.items):
        return value
    return None


def _ensure_array_entry(doc: ManifestDocument, spec: AdditionSpec) -> bool:
    path = spec.section
    identity = spec.identity_value
    assert spec.identity_key is not None and identity is not None
    for depth in range(1, len(path)):
        prefix = path[:depth]
        _check_not_value(doc, prefix)
        if doc.array(prefix):
            raise ConflictingManifestEntry(_dotted(prefix), "nested arrays of tables are not supported")
    inline = _inline_table_array(doc, path)
    if inline is not None:
        if any(item.get(spec.identity_key) == identity for item in inline.items):
            return False
        raise ConflictingManifestEntry(_dotted(path), "an inline array of tables is defined here and cannot be extended")
    _check_not_value(doc, path)
    if doc.section(path) is not None:
        raise ConflictingManifestEntry(_dotted(path), "a table is defined here, not an array of tables")
    if len(path) > 1:
        _ensure_section(doc, path[:-1])

    elements = doc.array(path)
    for element in elements:
        if element.get(spec.identity_key) == identity:
            return False

    new = Section(path=path, is_array=True, entries=[Entry(key=(k,), value=v) for k, v in spec.entry])
    if elements:
        last = next(i for i, s in enumerate(doc.sections) if s is elements[-1])
        doc.insert_section(doc.subtree_end(last), new)
    else:
        doc.insert_section(_insertion_index(doc, path[:-1]), new)
    return True

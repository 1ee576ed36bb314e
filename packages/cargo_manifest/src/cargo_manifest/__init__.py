from cargo_manifest.engine import AdditionSpec, AugmentResult, MergePolicy, augment
from cargo_manifest.errors import (
    ConflictingManifestEntry,
    MalformedManifest,
    ManifestError,
    UnserializableValue,
)
from cargo_manifest.model import (
    Array,
    Boolean,
    Entry,
    InlineTable,
    Integer,
    ManifestDocument,
    Opaque,
    Section,
    String,
    Value,
)
from cargo_manifest.parser import parse_manifest
from cargo_manifest.serializer import serialize_manifest

__all__ = [
    "AdditionSpec",
    "Array",
    "AugmentResult",
    "Boolean",
    "ConflictingManifestEntry",
    "Entry",
    "InlineTable",
    "Integer",
    "MalformedManifest",
    "ManifestDocument",
    "ManifestError",
    "MergePolicy",
    "Opaque",
    "Section",
    "String",
    "UnserializableValue",
    "Value",
    "augment",
    "parse_manifest",
    "serialize_manifest",
]

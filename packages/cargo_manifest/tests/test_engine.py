from __future__ import annotations

import tomllib
from typing import Any

import pytest

from cargo_manifest import (
    AdditionSpec,
    ConflictingManifestEntry,
    Integer,
    MergePolicy,
    String,
    augment,
    parse_manifest,
    serialize_manifest,
)

_BASE = """\
[package]
name = "demo"
version = "0.1.0"
edition = "2021"
"""

_SPECS = (
    AdditionSpec.ensure_section(("dependencies",)),
    AdditionSpec.ensure_key(("dependencies",), "anyhow", String("1.0"), canonical_names=True),
    AdditionSpec.ensure_key(("dependencies",), "dependency-x", String("1.0"), canonical_names=True),
    AdditionSpec.ensure_section(("package", "metadata", "grumpy")),
    AdditionSpec.ensure_key(("package", "metadata", "grumpy"), "conventions", Integer(1)),
    AdditionSpec.ensure_array_entry(
        ("bin",),
        identity_key="name",
        entry=(("name", String("demo")), ("path", String("src/main.rs"))),
    ),
)


def _augment_text(text: str) -> str:
    doc = parse_manifest(text)
    augment(doc, _SPECS)
    return serialize_manifest(doc)


def _assert_preserved(before: Any, after: Any) -> None:
    if isinstance(before, dict):
        assert isinstance(after, dict)
        for key, value in before.items():
            assert key in after
            _assert_preserved(value, after[key])
    elif isinstance(before, list) and before and all(isinstance(item, dict) for item in before):
        assert after[: len(before)] == before
    else:
        assert after == before


def test_augment_adds_everything_to_minimal_manifest() -> None:
    assert _augment_text(_BASE) == (
        "[package]\n"
        'name = "demo"\n'
        'version = "0.1.0"\n'
        'edition = "2021"\n'
        "\n"
        "[package.metadata]\n"
        "\n"
        "[package.metadata.grumpy]\n"
        "conventions = 1\n"
        "\n"
        "[dependencies]\n"
        'anyhow = "1.0"\n'
        'dependency-x = "1.0"\n'
        "\n"
        "[[bin]]\n"
        'name = "demo"\n'
        'path = "src/main.rs"\n'
    )


def test_augment_reports_applied_specs_in_order() -> None:
    doc = parse_manifest(_BASE)
    result = augment(doc, _SPECS)
    assert result.changed
    assert [spec.describe() for spec in result.applied] == [
        "[dependencies]",
        'dependencies.anyhow = "1.0"',
        'dependencies.dependency-x = "1.0"',
        "[package.metadata.grumpy]",
        "package.metadata.grumpy.conventions = 1",
        '[[bin]] name = "demo"',
    ]


def test_augment_is_idempotent() -> None:
    once = _augment_text(_BASE)
    doc = parse_manifest(once)
    before = doc.copy()

    result = augment(doc, _SPECS)

    assert result.applied == ()
    assert not result.changed
    assert doc == before
    assert serialize_manifest(doc) == once


def test_existing_values_are_never_overwritten() -> None:
    text = _BASE + '\n[dependencies]\ndependency-x = "2.0"  # pinned\n'
    out = _augment_text(text)

    assert out.count("dependency-x") == 1
    assert 'dependency-x = "2.0"  # pinned' in out
    assert tomllib.loads(out)["dependencies"] == {"dependency-x": "2.0", "anyhow": "1.0"}


def test_dependency_names_match_canonically() -> None:
    text = _BASE + '\n[dependencies]\nDependency_X = { version = "3", optional = true }\nAnyhow = "1"\n'
    out = _augment_text(text)
    assert tomllib.loads(out)["dependencies"] == {
        "Dependency_X": {"version": "3", "optional": True},
        "Anyhow": "1",
    }


def test_dependency_sub_tables_and_dotted_keys_count_as_present() -> None:
    text = _BASE + '\n[dependencies.anyhow]\nversion = "1.0.70"\n\n[build-dependencies]\ncc = "1"\n'
    text = text.replace("[package]", 'dependency-x.workspace = true\n\n[package]', 1)
    doc = parse_manifest(text)
    # The root-level dotted key does not live in [dependencies] and must not count.
    result = augment(doc, _SPECS)
    out = serialize_manifest(doc)

    data = tomllib.loads(out)
    assert data["dependencies"]["anyhow"] == {"version": "1.0.70"}
    assert data["dependencies"]["dependency-x"] == "1.0"
    assert 'dependencies.anyhow = "1.0"' not in [spec.describe() for spec in result.applied]

    text = _BASE + '\n[dependencies]\nanyhow.workspace = true\n'
    data = tomllib.loads(_augment_text(text))
    assert data["dependencies"]["anyhow"] == {"workspace": True}


def test_augment_preserves_existing_content_and_comments() -> None:
    text = """\
# Workspace member.
[package]
name = "demo"   # crate name
version = "0.1.0"
edition = "2021"
rust-version = "1.70"  # pinned for msrv

[features]
default = ["std"]
std = []

[dependencies]
serde = { version = "1.0", features = ["derive"] }

[[bin]]
name = "tool"
path = "src/bin/tool.rs"

[bin.metadata]
x = 1

[dev-dependencies]
proptest = "1"

# end of manifest
"""
    doc = parse_manifest(text)
    before = doc.to_python()
    augment(doc, _SPECS)
    out = serialize_manifest(doc)
    after = tomllib.loads(out)

    _assert_preserved(before, after)
    for comment in ("# Workspace member.", "# crate name", "# pinned for msrv", "# end of manifest"):
        assert comment in out
    assert serialize_manifest(parse_manifest(out)) == out

    # The new [[bin]] element lands after the existing element and its sub-table.
    assert out.index("[bin.metadata]") < out.index('name = "demo"\npath = "src/main.rs"') < out.index(
        "[dev-dependencies]"
    )
    assert after["bin"] == [
        {"name": "tool", "path": "src/bin/tool.rs", "metadata": {"x": 1}},
        {"name": "demo", "path": "src/main.rs"},
    ]
    # Metadata tables are nested right after [package].
    assert out.index("[package.metadata.grumpy]") < out.index("[features]")


def test_crlf_manifests_stay_crlf() -> None:
    text = _BASE.replace("\n", "\r\n")
    out = _augment_text(text)
    assert "\n" not in out.replace("\r\n", "")
    assert tomllib.loads(out)["package"]["metadata"]["grumpy"] == {"conventions": 1}


def test_existing_array_entry_is_matched_by_identity() -> None:
    text = _BASE + '\n[[bin]]\nname = "demo"\npath = "src/other.rs"\n'
    out = _augment_text(text)
    assert tomllib.loads(out)["bin"] == [{"name": "demo", "path": "src/other.rs"}]


def test_inline_array_of_tables_is_matched_by_identity() -> None:
    text = 'bin = [{ name = "demo", path = "src/main.rs" }]\n\n' + _BASE
    spec = _SPECS[-1]
    doc = parse_manifest(text)

    assert augment(doc, [spec]).applied == ()
    assert serialize_manifest(doc) == text

    out = _augment_text(text)
    assert "[[bin]]" not in out
    assert tomllib.loads(out)["bin"] == [{"name": "demo", "path": "src/main.rs"}]
    assert _augment_text(out) == out


@pytest.mark.parametrize(
    ("text", "path"),
    [
        ('dependencies = "oops"\n' + _BASE, "dependencies"),
        ("dependencies = []\n" + _BASE, "dependencies"),
        (_BASE + "\n[[dependencies]]\n", "dependencies"),
        (_BASE + "metadata = { grumpy = 1 }\n", "package.metadata"),
        (_BASE + "metadata.grumpy = 1\n", "package.metadata"),
        (_BASE + '\n[bin]\nname = "x"\n', "bin"),
        ("bin = 1\n" + _BASE, "bin"),
        ('bin = [{ name = "other", path = "src/other.rs" }]\n' + _BASE, "bin"),
    ],
)
def test_conflicts_leave_the_document_unmodified(text: str, path: str) -> None:
    doc = parse_manifest(text)
    before = doc.copy()

    with pytest.raises(ConflictingManifestEntry) as excinfo:
        augment(doc, _SPECS)

    assert excinfo.value.path == path
    assert doc == before
    assert serialize_manifest(doc) == text


def test_ensure_key_creates_missing_section() -> None:
    doc = parse_manifest(_BASE)
    spec = AdditionSpec.ensure_key(("profile", "release"), "lto", String("thin"))
    result = augment(doc, [spec])
    assert result.applied == (spec,)
    out = serialize_manifest(doc)
    assert "[profile]\n\n[profile.release]\nlto = \"thin\"\n" in out
    assert tomllib.loads(out)["profile"] == {"release": {"lto": "thin"}}


def test_ensure_array_entry_requires_identity_key() -> None:
    with pytest.raises(ValueError):
        AdditionSpec.ensure_array_entry(("bin",), identity_key="name", entry=(("path", String("x.rs")),))
    spec = AdditionSpec.ensure_array_entry(("bin",), identity_key="name", entry=(("name", String("x")),))
    assert spec.policy is MergePolicy.ENSURE_ARRAY_ENTRY
    assert spec.identity_value == String("x")

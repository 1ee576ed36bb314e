from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from grumpy.catalog import DEFAULT_SCRIPT_NAME
from grumpy.errors import ConfigError

_ALLOWED_KEYS = frozenset({"cargo", "cargo_new_args", "script_name"})


@dataclass(frozen=True)
class GrumpyConfig:
    cargo: str | None = None
    cargo_new_args: tuple[str, ...] = ()
    script_name: str = DEFAULT_SCRIPT_NAME
    source_path: Path | None = None

    def cargo_command(self, env: Mapping[str, str] | None = None) -> str:
        """Config `cargo` wins, then `$CARGO` (set when running as a cargo subcommand), then plain `cargo`."""
        if self.cargo:
            return self.cargo
        environ = os.environ if env is None else env
        return environ.get("CARGO") or "cargo"


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if env is None else env
    xdg = environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "grumpy" / "config.yaml"


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(raw).__name__}.")
    return raw


def load_config(path: Path | None = None, *, env: Mapping[str, str] | None = None) -> GrumpyConfig:
    """
    Load the user configuration.

    An explicit `path` (or `$GRUMPY_CONFIG`) must exist; the default location is optional.
    """

    environ = os.environ if env is None else env
    required = True
    if path is None:
        explicit = environ.get("GRUMPY_CONFIG")
        if explicit:
            path = Path(explicit)
        else:
            path = default_config_path(environ)
            required = False

    path = path.expanduser()
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return GrumpyConfig()

    data = _load_yaml_mapping(path)
    unknown = set(data) - _ALLOWED_KEYS
    if unknown:
        raise ConfigError(
            f"Unknown keys in {path}: {', '.join(sorted(unknown))}. Allowed: {', '.join(sorted(_ALLOWED_KEYS))}."
        )

    cargo = data.get("cargo")
    if cargo is not None and (not isinstance(cargo, str) or not cargo.strip()):
        raise ConfigError(f"Expected non-empty string for cargo in {path}.")

    new_args = data.get("cargo_new_args", [])
    if new_args is None:
        new_args = []
    if not isinstance(new_args, list) or not all(isinstance(x, str) and x for x in new_args):
        raise ConfigError(f"Expected a list of non-empty strings for cargo_new_args in {path}.")

    script_name = data.get("script_name", DEFAULT_SCRIPT_NAME)
    if not isinstance(script_name, str) or not script_name.strip():
        raise ConfigError(f"Expected non-empty string for script_name in {path}.")

    return GrumpyConfig(
        cargo=cargo,
        cargo_new_args=tuple(new_args),
        script_name=script_name.strip(),
        source_path=path,
    )

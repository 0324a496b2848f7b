"""
Configuration Loader (``contract_config.loader``).

Responsibility
--------------
Reads YAML files and environment variables and parses them into the
frozen dataclasses of ``contract_config.schema``.  Runtime callers use
``contract_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; malformed values never fall back to a default.
* Later layers override earlier ones key by key:
  defaults.yaml < config file < environment.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``KeyError``.
* Non-boolean / non-integer override  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from contract_config.schema import (
    ContractEngineConfig,
    DatabaseConfig,
    LoggingConfig,
    ServiceConfig,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "logging": LoggingConfig,
    "service": ServiceConfig,
}

# env var -> (section, key, parser name)
ENV_OVERRIDES: dict[str, tuple[str, str, str]] = {
    "DATABASE_URL": ("database", "url", "str"),
    "SQL_ECHO": ("database", "echo", "bool"),
    "DB_POOL_SIZE": ("database", "pool_size", "int"),
    "DB_MAX_OVERFLOW": ("database", "max_overflow", "int"),
    "DB_STATEMENT_TIMEOUT_MS": ("database", "statement_timeout_ms", "int"),
    "LOG_LEVEL": ("logging", "level", "str"),
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name}: expected a boolean, got {raw!r}")


def parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name}: expected an integer, got {raw!r}") from None


def merge_layer(base: dict[str, Any], layer: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay ``layer`` onto ``base`` section by section."""
    merged = {section: dict(values or {}) for section, values in base.items()}
    for section, values in layer.items():
        if section not in _SECTIONS:
            raise KeyError(f"Unknown configuration section: {section!r}")
        if not isinstance(values, Mapping):
            raise ValueError(f"Section {section!r} must be a mapping")
        merged.setdefault(section, {}).update(values)
    return merged


def environment_layer(environ: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    """Translate recognised environment variables into a config layer."""
    layer: dict[str, dict[str, Any]] = {}
    for name, (section, key, kind) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        if kind == "bool":
            value: Any = parse_bool(name, raw)
        elif kind == "int":
            value = parse_int(name, raw)
        else:
            value = raw
        layer.setdefault(section, {})[key] = value
    return layer


def _build_section(section: str, values: Mapping[str, Any]) -> Any:
    cls = _SECTIONS[section]
    known = set(cls.__dataclass_fields__)
    unknown = set(values) - known
    if unknown:
        raise KeyError(f"Unknown keys in section {section!r}: {sorted(unknown)}")
    return cls(**values)


def parse_config(data: Mapping[str, Any], source: str = "defaults") -> ContractEngineConfig:
    """
    Build a ContractEngineConfig from a merged mapping.

    Raises:
        KeyError: if ``database.url`` is missing or a key is unknown.
    """
    database = dict(data.get("database") or {})
    if not database.get("url"):
        raise KeyError("database.url is required")
    return ContractEngineConfig(
        database=_build_section("database", database),
        logging=_build_section("logging", data.get("logging") or {}),
        service=_build_section("service", data.get("service") or {}),
        source=source,
    )

"""
Configuration Loader (``mdm_config.loader``).

Responsibility
--------------
Loads the YAML settings file and parses it into the frozen dataclasses of
``mdm_config.schema``.  Runtime callers go through
``mdm_config.get_active_settings()``; this module is the parsing half.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys in a section  -> ``ValueError``; a typo must not silently
  fall back to a default.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from mdm_config.schema import (
    DatabaseSettings,
    GoldenCodeSettings,
    LoggingSettings,
    MasterBuilderSettings,
    MdmSettings,
    RequestDefaults,
    RoleSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_section(section_type: type, data: dict[str, Any] | None, name: str):
    data = data or {}
    declared = {f.name for f in fields(section_type)}
    unknown = set(data) - declared
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' settings: {sorted(unknown)}")
    return section_type(**data)


def parse_settings(data: dict[str, Any]) -> MdmSettings:
    """Parse a whole settings document.  Absent sections take their defaults."""
    identities = data.get("system_identities")
    return MdmSettings(
        database=_parse_section(DatabaseSettings, data.get("database"), "database"),
        roles=_parse_section(RoleSettings, data.get("roles"), "roles"),
        system_identities=(
            frozenset(identities) if identities is not None else MdmSettings().system_identities
        ),
        golden_code=_parse_section(GoldenCodeSettings, data.get("golden_code"), "golden_code"),
        master_builder=_parse_section(
            MasterBuilderSettings, data.get("master_builder"), "master_builder"
        ),
        defaults=_parse_section(RequestDefaults, data.get("defaults"), "defaults"),
        logging=_parse_section(LoggingSettings, data.get("logging"), "logging"),
    )


def load_settings(path: Path) -> MdmSettings:
    return parse_settings(load_yaml_file(path))

"""
Settings Loader (``procurement_config.loader``).

Loads a YAML settings file and parses it into ``ProcurementSettings``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key  -> ``KeyError``; invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import ProcurementSettings

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_settings(data: dict[str, Any]) -> ProcurementSettings:
    """Parse the ``procurement`` section (or a bare mapping) into settings."""
    section = data.get("procurement", data)
    if not isinstance(section, dict):
        raise ValueError("'procurement' section must be a mapping")
    return ProcurementSettings.from_dict(section)


def compute_checksum(settings: ProcurementSettings) -> str:
    """Deterministic SHA-256 of the effective settings."""
    payload = {name: getattr(settings, name) for name in sorted(ProcurementSettings.field_names())}
    canonical = json.dumps(payload, sort_keys=True, default=list)
    return hashlib.sha256(canonical.encode()).hexdigest()

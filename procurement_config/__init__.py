"""
procurement_config -- entrypoint for workflow settings.

``load_settings()`` returns the packaged defaults; ``load_settings(path)``
returns the settings in the given YAML file layered over those defaults.
Services receive a ``ProcurementSettings`` instance by injection and never
read files themselves.
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

from procurement_config.loader import (
    DEFAULTS_PATH,
    compute_checksum,
    load_yaml_file,
    parse_settings,
)
from procurement_config.schema import ProcurementSettings
from procurement_kernel.logging_config import get_logger

logger = get_logger("config")

__all__ = ["ProcurementSettings", "load_settings", "compute_checksum"]


def load_settings(path: str | Path | None = None) -> ProcurementSettings:
    defaults = parse_settings(load_yaml_file(DEFAULTS_PATH))
    if path is None:
        settings = defaults
    else:
        overrides = load_yaml_file(Path(path))
        section = overrides.get("procurement", overrides)
        merged = asdict(defaults)
        merged.update(section)
        settings = ProcurementSettings.from_dict(merged)
    logger.info(
        "procurement_settings_loaded",
        extra={
            "source": str(path) if path is not None else "defaults",
            "checksum": compute_checksum(settings),
        },
    )
    return settings

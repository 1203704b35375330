"""
Kernel Settings (``procurement_kernel.config``).

Responsibility
--------------
Loads the runtime settings of the procurement kernel: database connection,
pool sizing, PO numbering format, business timezone and log level.  Values
come from an optional YAML file, then from environment variables, then from
the dataclass defaults.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or a non-mapping document  -> ``ValueError``.
* Invalid timezone name  -> ``ValueError``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"

# Environment variable -> settings field
_ENV_OVERRIDES = {
    "DATABASE_URL": "database_url",
    "PROCUREMENT_DATABASE_URL": "database_url",
    "PROCUREMENT_LOG_LEVEL": "log_level",
    "PROCUREMENT_BUSINESS_TIMEZONE": "business_timezone",
    "PROCUREMENT_PO_NUMBER_PREFIX": "po_number_prefix",
}


@dataclass(frozen=True)
class KernelSettings:
    """Immutable runtime settings for the procurement kernel."""

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    po_number_prefix: str = "PO"
    po_number_width: int = 3
    business_timezone: str = "UTC"
    log_level: str = "INFO"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def parse_settings(data: dict[str, Any]) -> KernelSettings:
    """Build KernelSettings from a parsed mapping, rejecting unknown keys."""
    # Accept both a flat document and one nested under "procurement:"
    if "procurement" in data and isinstance(data["procurement"], dict):
        data = data["procurement"]

    known = {f.name for f in fields(KernelSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    settings = KernelSettings(**data)
    _validate(settings)
    return settings


def load_settings(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> KernelSettings:
    """
    Load settings from YAML (optional) and apply environment overrides.

    Args:
        path: YAML file to load.  When None, ``PROCUREMENT_CONFIG`` from the
            environment is used if set; otherwise defaults apply.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated KernelSettings.
    """
    env = os.environ if environ is None else environ

    if path is None and env.get("PROCUREMENT_CONFIG"):
        path = env["PROCUREMENT_CONFIG"]

    settings = parse_settings(load_yaml_file(Path(path))) if path else KernelSettings()

    overrides: dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            overrides[field_name] = value
    if overrides:
        settings = replace(settings, **overrides)
        _validate(settings)

    return settings


def _validate(settings: KernelSettings) -> None:
    if not settings.database_url:
        raise ValueError("database_url must not be empty")
    if settings.po_number_width < 1:
        raise ValueError("po_number_width must be >= 1")
    if not settings.po_number_prefix:
        raise ValueError("po_number_prefix must not be empty")
    try:
        ZoneInfo(settings.business_timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(
            f"Unknown business_timezone: {settings.business_timezone}"
        ) from exc

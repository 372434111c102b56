"""
Configuration management and loading.

Handles ledger settings from an optional YAML file and environment variables.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


DEFAULT_TIMEZONE = "Africa/Algiers"
DEFAULT_REPORT_SCHEDULE = "09:00 daily"
DEFAULT_DB_PATH = "workshop_ledger.db"

SUPPORTED_LOCALES = ("ar", "en")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS = ("console", "json")

# Environment variable -> config field
ENV_OVERRIDES = {
    "TIMEZONE": "timezone",
    "REPORT_SCHEDULE": "report_schedule",
    "ALLOW_AUTO_CREATE_WORKSHOPS": "allow_auto_create_workshops",
    "LEDGER_DB_PATH": "db_path",
    "LEDGER_LOCALE": "locale",
    "LOG_LEVEL": "log_level",
}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class LedgerConfig:
    """Complete ledger configuration."""
    timezone: str = DEFAULT_TIMEZONE
    report_schedule: str = DEFAULT_REPORT_SCHEDULE
    allow_auto_create_workshops: bool = False
    db_path: str = DEFAULT_DB_PATH
    locale: str = "ar"
    log_level: str = "INFO"
    log_format: str = "console"

    def __post_init__(self):
        """Validate configuration values."""
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {self.timezone}")
        if not self.report_schedule or not self.report_schedule.strip():
            raise ValueError("report_schedule must not be empty")
        if not self.db_path:
            raise ValueError("db_path must not be empty")
        if self.locale not in SUPPORTED_LOCALES:
            raise ValueError(f"locale must be one of: {list(SUPPORTED_LOCALES)}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {list(LOG_LEVELS)}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of: {list(LOG_FORMATS)}")

    @property
    def tz(self) -> ZoneInfo:
        """Configured timezone as a ZoneInfo."""
        return ZoneInfo(self.timezone)


def load_ledger_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> LedgerConfig:
    """Load and validate ledger configuration.

    Values come from the YAML file when a path is given, then environment
    variables override them. Unknown keys in the file are rejected so a
    misspelled setting never falls back silently to its default.

    Args:
        path: Optional path to YAML configuration file
        environ: Environment mapping, defaults to os.environ

    Returns:
        Validated LedgerConfig object

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_config_file(path))

    config = LedgerConfig(**values)
    return apply_env_overrides(config, os.environ if environ is None else environ)


def apply_env_overrides(config: LedgerConfig, environ: Mapping[str, str]) -> LedgerConfig:
    """Return a copy of config with recognized environment variables applied."""
    changes: Dict[str, Any] = {}
    for env_name, field_name in ENV_OVERRIDES.items():
        if env_name not in environ:
            continue
        raw = environ[env_name]
        if field_name == "allow_auto_create_workshops":
            changes[field_name] = _parse_bool(raw, env_name)
        elif field_name == "log_level":
            changes[field_name] = raw.strip().upper()
        else:
            changes[field_name] = raw.strip()
    if not changes:
        return config
    return replace(config, **changes)


def _read_config_file(path: str) -> Dict[str, Any]:
    """Read and validate the raw YAML mapping."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Ledger config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration file must contain a mapping")

    allowed_keys = set(LedgerConfig.__dataclass_fields__)
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    values = dict(raw_config)
    if 'allow_auto_create_workshops' in values:
        flag = values['allow_auto_create_workshops']
        if isinstance(flag, str):
            flag = _parse_bool(flag, 'allow_auto_create_workshops')
        if not isinstance(flag, bool):
            raise ValueError("'allow_auto_create_workshops' must be a boolean")
        values['allow_auto_create_workshops'] = flag

    for key in ('timezone', 'report_schedule', 'db_path', 'locale', 'log_level', 'log_format'):
        if key in values and not isinstance(values[key], str):
            raise ValueError(f"'{key}' must be a string")
    if 'log_level' in values:
        values['log_level'] = values['log_level'].upper()

    return values


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"'{name}' must be a boolean, got {raw!r}")

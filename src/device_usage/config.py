"""Configuration loading from YAML and environment variables."""

import os
from dataclasses import dataclass, fields, replace
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .analysis.savings import AVG_HOURS_SAVED_PER_EVENT
from .analysis.sessions import MAX_SESSION_MINUTES
from .tariffs import DEFAULT_UNIT_PRICE, DEFAULT_WATTAGE

ENV_PREFIX = "DEVICE_USAGE_"
DEFAULT_CONFIG_PATH = Path("config") / "device_usage.yaml"


class ConfigError(ValueError):
    """Invalid configuration value."""


@dataclass(frozen=True)
class UsageConfig:
    """Recognised options for the usage pipeline."""

    max_session_minutes: float = MAX_SESSION_MINUTES
    default_wattage: float = DEFAULT_WATTAGE
    default_unit_price: float = DEFAULT_UNIT_PRICE
    avg_hours_saved_per_auto_off: float = AVG_HOURS_SAVED_PER_EVENT
    timezone: str = "UTC"
    devices_file: str | None = None

    @property
    def tzinfo(self) -> tzinfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone: {self.timezone!r}") from e

    def validate(self) -> "UsageConfig":
        if self.max_session_minutes <= 0:
            raise ConfigError("max_session_minutes must be positive")
        if self.default_wattage < 0:
            raise ConfigError("default_wattage must not be negative")
        if self.default_unit_price < 0:
            raise ConfigError("default_unit_price must not be negative")
        if self.avg_hours_saved_per_auto_off < 0:
            raise ConfigError("avg_hours_saved_per_auto_off must not be negative")
        self.tzinfo  # raises for an unknown zone
        return self


def _coerce(name: str, value):
    """Convert a raw YAML/env value to the field type."""
    if value is None and name == "devices_file":
        return None
    if name in ("timezone", "devices_file"):
        return str(value)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e


def config_from_mapping(data: dict, base: UsageConfig | None = None) -> UsageConfig:
    """Apply recognised keys (any case, e.g. MAX_SESSION_MINUTES) to a config."""
    base = base or UsageConfig()
    known = {f.name for f in fields(UsageConfig)}
    updates = {}
    for key, value in (data or {}).items():
        name = str(key).lower()
        if name == "avg_hours_saved_per_event":
            name = "avg_hours_saved_per_auto_off"
        if name not in known:
            continue
        updates[name] = _coerce(name, value)
    return replace(base, **updates).validate()


def config_from_env(base: UsageConfig | None = None) -> UsageConfig:
    """Overlay DEVICE_USAGE_<OPTION> environment variables."""
    overrides = {}
    for f in fields(UsageConfig):
        value = os.environ.get(ENV_PREFIX + f.name.upper())
        if value is not None and value != "":
            overrides[f.name] = value
    return config_from_mapping(overrides, base)


def load_config(config_path: Path | None = None, use_env: bool = True) -> UsageConfig:
    """Load configuration from YAML (if present) then environment overrides."""
    config = UsageConfig()

    path = config_path or DEFAULT_CONFIG_PATH
    if config_path is not None or path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        config = config_from_mapping(data.get("usage", data), config)

    if use_env:
        load_dotenv()
        config = config_from_env(config)

    return config

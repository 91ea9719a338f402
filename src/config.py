"""Configuration loader for the TPG stop board."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Any

from dotenv import load_dotenv
import yaml

from src.data.models import StopConfig

LANGUAGES = ("en", "fr")
TIME_FORMATS = ("minutes", "time")


@dataclass(frozen=True)
class TransportConfig:
    """Endpoints and request settings for the transport APIs."""

    locations_url: str
    stationboard_url: str
    catalog_url: str
    timeout_seconds: float
    stationboard_limit: int


@dataclass(frozen=True)
class CatalogConfig:
    """Local catalog cache settings."""

    cache_path: str
    retention_days: float


@dataclass(frozen=True)
class RefreshConfig:
    """Refresh cadence and input debounce windows."""

    single_stop_interval_seconds: int
    rotation_interval_seconds: int
    countdown_seconds: float
    suggestion_debounce_ms: int
    filter_debounce_ms: int
    geolocation_timeout_seconds: float


@dataclass(frozen=True)
class DisplayConfig:
    """Presentation preferences passed through to sinks."""

    dark_mode: bool
    language: str
    time_format: str
    suggestions_limit: int


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str
    log_dir: str


@dataclass(frozen=True)
class RotationConfig:
    """Stops cycled through in rotation mode."""

    stops: tuple[StopConfig, ...]
    advance_on_refresh: bool


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    transport: TransportConfig
    catalog: CatalogConfig
    refresh: RefreshConfig
    display: DisplayConfig
    log: LoggingConfig
    rotation: RotationConfig


def _require_key(mapping: dict[str, Any], key: str, context: str) -> Any:
    if key not in mapping:
        raise ValueError(f"Missing required key '{key}' in {context} config")
    return mapping[key]


def _require_section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = _require_key(data, name, name)
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' config must be a mapping")
    return section


def _require_choice(mapping: dict[str, Any], key: str, context: str, choices: tuple[str, ...]) -> str:
    value = _require_key(mapping, key, context)
    if value not in choices:
        raise ValueError(f"'{context}.{key}' must be one of {', '.join(choices)}, got {value!r}")
    return value


def _split_numbers(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        tokens = [str(item) for item in value]
    else:
        tokens = str(value).split(",")
    return tuple(token.strip() for token in tokens if token.strip())


def _parse_rotation(section: Any) -> RotationConfig:
    if section is None:
        return RotationConfig(stops=(), advance_on_refresh=False)
    if not isinstance(section, dict):
        raise ValueError("'rotation' config must be a mapping")
    raw_stops = section.get("stops") or []
    if not isinstance(raw_stops, list):
        raise ValueError("'rotation.stops' must be a list")

    stops = []
    for raw in raw_stops:
        if not isinstance(raw, dict):
            raise ValueError("Each rotation stop must be a mapping")
        name = str(_require_key(raw, "name", "rotation stop")).strip()
        if not name:
            raise ValueError("Rotation stop name must not be empty")
        stops.append(StopConfig(stop_name=name, vehicle_number_filters=_split_numbers(raw.get("numbers"))))
    return RotationConfig(
        stops=tuple(stops),
        advance_on_refresh=bool(section.get("advance_on_refresh", False)),
    )


def load_config(path: str = "config/config.yaml") -> AppConfig:
    """Load application configuration from a YAML file."""
    load_dotenv()
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise ValueError(f"Config file not found: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping at the top level")

    transport_section = _require_section(data, "transport")
    catalog_section = _require_section(data, "catalog")
    refresh_section = _require_section(data, "refresh")
    display_section = _require_section(data, "display")
    logging_section = _require_section(data, "logging")

    transport = TransportConfig(
        locations_url=_require_key(transport_section, "locations_url", "transport"),
        stationboard_url=_require_key(transport_section, "stationboard_url", "transport"),
        catalog_url=_require_key(transport_section, "catalog_url", "transport"),
        timeout_seconds=_require_key(transport_section, "timeout_seconds", "transport"),
        stationboard_limit=_require_key(transport_section, "stationboard_limit", "transport"),
    )

    catalog = CatalogConfig(
        cache_path=os.environ.get("STOPBOARD_CACHE_PATH")
        or _require_key(catalog_section, "cache_path", "catalog"),
        retention_days=_require_key(catalog_section, "retention_days", "catalog"),
    )

    refresh = RefreshConfig(
        single_stop_interval_seconds=_require_key(refresh_section, "single_stop_interval_seconds", "refresh"),
        rotation_interval_seconds=_require_key(refresh_section, "rotation_interval_seconds", "refresh"),
        countdown_seconds=_require_key(refresh_section, "countdown_seconds", "refresh"),
        suggestion_debounce_ms=_require_key(refresh_section, "suggestion_debounce_ms", "refresh"),
        filter_debounce_ms=_require_key(refresh_section, "filter_debounce_ms", "refresh"),
        geolocation_timeout_seconds=_require_key(refresh_section, "geolocation_timeout_seconds", "refresh"),
    )

    display = DisplayConfig(
        dark_mode=bool(_require_key(display_section, "dark_mode", "display")),
        language=_require_choice(display_section, "language", "display", LANGUAGES),
        time_format=_require_choice(display_section, "time_format", "display", TIME_FORMATS),
        suggestions_limit=_require_key(display_section, "suggestions_limit", "display"),
    )

    logging = LoggingConfig(
        level=os.environ.get("STOPBOARD_LOG_LEVEL") or _require_key(logging_section, "level", "logging"),
        log_dir=_require_key(logging_section, "log_dir", "logging"),
    )

    return AppConfig(
        transport=transport,
        catalog=catalog,
        refresh=refresh,
        display=display,
        log=logging,
        rotation=_parse_rotation(data.get("rotation")),
    )

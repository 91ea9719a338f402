"""Departure extraction, filtering and countdown helpers."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import math
import re
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from loguru import logger

from src.data.models import Departure, VehicleType

TIMEZONE = ZoneInfo("Europe/Zurich")
DEFAULT_BG_COLOR = "#FF6600"
DEFAULT_FG_COLOR = "#FFFFFF"
TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S")

_NUMERIC_TOKEN = re.compile(r"^\d+(\.\d+)?$")


def minutes_until(departure: datetime, now: datetime) -> int:
    """Whole minutes until departure, rounded up like the board countdown."""
    return math.ceil((departure - now).total_seconds() / 60.0)


def _is_immediate(raw_time: str) -> bool:
    return "depart" in raw_time.lower().replace("é", "e")


def _parse_local_time(raw_time: str) -> datetime | None:
    for fmt in TIME_FORMATS:
        try:
            parsed = datetime.strptime(raw_time.strip(), fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=TIMEZONE)
    try:
        parsed = datetime.fromisoformat(raw_time.strip())
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=TIMEZONE)


def _parse_colors(raw_color: Any) -> tuple[str, str]:
    if not isinstance(raw_color, str) or "~" not in raw_color:
        return DEFAULT_BG_COLOR, DEFAULT_FG_COLOR
    bg, _, fg = raw_color.partition("~")
    bg, fg = bg.strip(), fg.strip()
    return (f"#{bg}" if bg else DEFAULT_BG_COLOR, f"#{fg}" if fg else DEFAULT_FG_COLOR)


def parse_connection(connection: Any, now: datetime) -> Departure | None:
    """Convert one stationboard connection; returns None when required fields are missing."""
    if not isinstance(connection, dict):
        return None
    raw_time = connection.get("time")
    terminal = connection.get("terminal")
    destination = terminal.get("name") if isinstance(terminal, dict) else None
    if not isinstance(raw_time, str) or not raw_time or not isinstance(destination, str) or not destination:
        return None

    is_immediate = _is_immediate(raw_time)
    departure_time = now if is_immediate else _parse_local_time(raw_time)
    if departure_time is None:
        logger.debug("Skipping connection with unparseable time {!r}", raw_time)
        return None

    bg_color, fg_color = _parse_colors(connection.get("color"))
    line = connection.get("line")
    return Departure(
        vehicle_type=VehicleType.TRAM if connection.get("type") == "tram" else VehicleType.BUS,
        line="" if line is None else str(line),
        destination=destination,
        departure=departure_time,
        minutes_until_departure=minutes_until(departure_time, now),
        is_immediate=is_immediate,
        bg_color=bg_color,
        fg_color=fg_color,
    )


def parse_departures(connections: Iterable[Any], now: datetime) -> list[Departure]:
    """Convert stationboard connections, dropping malformed ones."""
    departures = []
    for connection in connections:
        departure = parse_connection(connection, now)
        if departure is not None:
            departures.append(departure)
    return departures


def parse_vehicle_numbers(value: str) -> tuple[str, ...]:
    """Split a comma-separated filter field, keeping numeric tokens only."""
    tokens = (token.strip() for token in value.split(","))
    return tuple(token for token in tokens if token and _NUMERIC_TOKEN.match(token))


def filter_departures(departures: Iterable[Departure], vehicle_numbers: Iterable[str]) -> list[Departure]:
    """Keep departures whose line matches one of the filters; no filters keeps all."""
    wanted = {number.strip().lower() for number in vehicle_numbers if number.strip()}
    if not wanted:
        return list(departures)
    return [departure for departure in departures if departure.line.lower() in wanted]


def recompute_minutes(departures: Iterable[Departure], now: datetime) -> list[Departure]:
    """Refresh minutes_until_departure from the fetched departure timestamps."""
    return [
        replace(departure, minutes_until_departure=minutes_until(departure.departure, now))
        for departure in departures
    ]


def group_departures(departures: Iterable[Departure]) -> dict[str, dict[str, list[Departure]]]:
    """Group by "type line" then destination, both in sorted order."""
    grouped: dict[str, dict[str, list[Departure]]] = {}
    for departure in departures:
        grouped.setdefault(departure.group_key, {}).setdefault(departure.destination, []).append(departure)
    return {
        key: {destination: grouped[key][destination] for destination in sorted(grouped[key])}
        for key in sorted(grouped)
    }


def describe_departure(departure: Departure, time_format: str = "minutes") -> str:
    """Short English label for a departure honoring the configured time format."""
    if departure.is_immediate:
        return "Leaving"
    minutes = departure.minutes_until_departure
    if minutes < 0:
        return f"{abs(minutes)} min !"
    if minutes == 0:
        return "At Stop"
    if time_format == "time":
        return departure.departure.astimezone(TIMEZONE).strftime("%H:%M")
    return f"{minutes} min"


__all__ = [
    "TIMEZONE",
    "describe_departure",
    "filter_departures",
    "group_departures",
    "minutes_until",
    "parse_connection",
    "parse_departures",
    "parse_vehicle_numbers",
    "recompute_minutes",
]

"""Data structures shared by the catalog, resolver and board session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Coordinate:
    """WGS84 position in decimal degrees."""

    lat: float
    lon: float


@dataclass(frozen=True)
class CatalogEntry:
    """Single stop record from the open-data catalog feed."""

    stop_name: str
    municipality: str
    coordinate: Coordinate | None
    active: bool

    @property
    def full_name(self) -> str:
        return f"{self.municipality}, {self.stop_name}"


@dataclass(frozen=True)
class Catalog:
    """Parsed catalog paired with the time the raw feed was fetched."""

    entries: tuple[CatalogEntry, ...]
    fetched_at: float  # epoch seconds

    def active_entries(self) -> list[CatalogEntry]:
        return [entry for entry in self.entries if entry.active]


@dataclass(frozen=True)
class Station:
    """Station returned by the station-search API."""

    id: str
    name: str
    coordinate: Coordinate | None = None


@dataclass(frozen=True)
class CanonicalStop:
    """Confirmed stop identity used for display and board queries."""

    id: str
    display_name: str


@dataclass(frozen=True)
class StopConfig:
    """One stop of the rotation list with its optional line filters."""

    stop_name: str
    vehicle_number_filters: tuple[str, ...] = ()


class VehicleType(str, Enum):
    BUS = "Bus"
    TRAM = "Tram"


@dataclass(frozen=True)
class Departure:
    """Single departure extracted from a departure board."""

    vehicle_type: VehicleType
    line: str
    destination: str
    departure: datetime
    minutes_until_departure: int
    is_immediate: bool
    bg_color: str
    fg_color: str

    @property
    def group_key(self) -> str:
        return f"{self.vehicle_type.value} {self.line}"


__all__ = [
    "CanonicalStop",
    "Catalog",
    "CatalogEntry",
    "Coordinate",
    "Departure",
    "Station",
    "StopConfig",
    "VehicleType",
]

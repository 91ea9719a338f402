"""Great-circle distance and proximity ranking."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from src.data.models import CatalogEntry, Coordinate, Station

EARTH_RADIUS_KM = 6371.0


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates in kilometres."""
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _usable(coordinate: Coordinate | None) -> bool:
    return (
        coordinate is not None
        and math.isfinite(coordinate.lat)
        and math.isfinite(coordinate.lon)
    )


def nearest(
    origin: Coordinate,
    entries: Iterable[CatalogEntry],
    k: int,
) -> list[tuple[CatalogEntry, float]]:
    """Return up to k entries with a coordinate, ascending by distance from origin."""
    if k <= 0:
        return []
    ranked = [
        (entry, distance_km(origin, entry.coordinate))
        for entry in entries
        if _usable(entry.coordinate)
    ]
    # sorted() is stable, so equal distances keep catalog order.
    ranked.sort(key=lambda pair: pair[1])
    return ranked[:k]


def rank_stations(origin: Coordinate, stations: Sequence[Station]) -> list[tuple[Station, float]]:
    """Re-rank API stations by local distance, dropping those without a coordinate."""
    ranked = [
        (station, distance_km(origin, station.coordinate))
        for station in stations
        if _usable(station.coordinate)
    ]
    ranked.sort(key=lambda pair: pair[1])
    return ranked


__all__ = ["EARTH_RADIUS_KM", "distance_km", "nearest", "rank_stations"]

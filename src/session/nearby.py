"""Geolocation acquisition and nearest-stop lookup."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from loguru import logger

from src.data.models import Coordinate
from src.data.transport_client import TransportClient
from src.logic.geo import nearest, rank_stations
from src.session.resolver import StopResolver

GEOLOCATION_TIMEOUT_SECONDS = 10.0
NEARBY_CATALOG_STOPS = 5
NEARBY_API_LIMIT = 20

PositionProvider = Callable[[], Awaitable[Coordinate]]


class GeolocationError(Exception):
    """Base class for failures to obtain the device position."""


class GeolocationUnsupported(GeolocationError):
    """No position provider is available."""


class GeolocationDenied(GeolocationError):
    """The position provider refused access."""


class GeolocationTimeout(GeolocationError):
    """The position provider did not answer within the allowed time."""


@dataclass(frozen=True)
class NearbyStop:
    """Catalog stop near the user with its confirmed display name."""

    name: str
    distance_km: float


async def acquire_position(
    provider: PositionProvider | None,
    timeout_seconds: float = GEOLOCATION_TIMEOUT_SECONDS,
) -> Coordinate:
    """Ask the provider for a position, bounded by timeout_seconds."""
    if provider is None:
        raise GeolocationUnsupported("No geolocation provider configured")
    try:
        return await asyncio.wait_for(provider(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise GeolocationTimeout(f"No position within {timeout_seconds:g}s") from exc
    except PermissionError as exc:
        raise GeolocationDenied(str(exc) or "Geolocation permission denied") from exc


class NearbyStopFinder:
    """Matches a coordinate to catalog stops and API stations."""

    def __init__(self, resolver: StopResolver, client: TransportClient) -> None:
        self._resolver = resolver
        self._client = client

    async def nearest_catalog_stop(self, origin: Coordinate) -> str | None:
        """Closest active catalog stop as "municipality, stopName"."""
        catalog = await self._resolver.catalog()
        candidates = [entry for entry in catalog.active_entries() if entry.municipality]
        ranked = nearest(origin, candidates, 1)
        if not ranked:
            return None
        entry, distance = ranked[0]
        logger.debug("Nearest catalog stop {!r} at {:.3f} km", entry.full_name, distance)
        return entry.full_name

    async def nearby_catalog_stops(self, origin: Coordinate, k: int = NEARBY_CATALOG_STOPS) -> list[NearbyStop]:
        """The k closest active catalog stops, named by the station search when it knows them."""
        catalog = await self._resolver.catalog()
        candidates = [entry for entry in catalog.active_entries() if entry.municipality]
        ranked = nearest(origin, candidates, k)

        async def _pretty(full_name: str) -> str:
            try:
                stop = await self._resolver.confirm(full_name)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.debug("Keeping catalog name {!r}: {}", full_name, exc)
                return full_name
            return stop.display_name if stop is not None else full_name

        names = await asyncio.gather(*(_pretty(entry.full_name) for entry, _ in ranked))
        return [NearbyStop(name=name, distance_km=distance) for name, (_, distance) in zip(names, ranked)]

    async def nearest_known_station(self, origin: Coordinate, limit: int = NEARBY_API_LIMIT) -> str | None:
        """Closest API station that is also a known catalog stop, as its canonical name."""
        stations = await asyncio.to_thread(self._client.nearby_stations, origin, limit)
        stations = [station for station in stations if station.id]
        catalog = await self._resolver.catalog()
        for station, _ in rank_stations(origin, stations):
            if await self._resolver.is_known(station.name, catalog):
                return await self._resolver.canonical_name(station.name, catalog)
        return None


__all__ = [
    "GeolocationDenied",
    "GeolocationError",
    "GeolocationTimeout",
    "GeolocationUnsupported",
    "NearbyStop",
    "NearbyStopFinder",
    "acquire_position",
]

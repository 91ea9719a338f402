from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from src.data.models import Catalog, Coordinate, Station
from src.session.nearby import (
    GeolocationDenied,
    GeolocationTimeout,
    GeolocationUnsupported,
    NearbyStop,
    NearbyStopFinder,
    acquire_position,
)
from src.session.resolver import StopResolver

NEAR_BEL_AIR = Coordinate(lat=46.2045, lon=6.1426)


def _finder(catalog: Catalog) -> tuple[NearbyStopFinder, MagicMock]:
    client = MagicMock()
    cache = MagicMock()
    cache.get.return_value = catalog
    return NearbyStopFinder(StopResolver(client, cache), client), client


def test_acquire_position_returns_provider_value() -> None:
    async def provider() -> Coordinate:
        return NEAR_BEL_AIR

    assert asyncio.run(acquire_position(provider, 1.0)) == NEAR_BEL_AIR


def test_acquire_position_times_out() -> None:
    async def slow_provider() -> Coordinate:
        await asyncio.sleep(5)
        return NEAR_BEL_AIR

    with pytest.raises(GeolocationTimeout):
        asyncio.run(acquire_position(slow_provider, 0.01))


def test_acquire_position_denied() -> None:
    async def refusing_provider() -> Coordinate:
        raise PermissionError("User denied geolocation")

    with pytest.raises(GeolocationDenied):
        asyncio.run(acquire_position(refusing_provider))


def test_acquire_position_without_provider() -> None:
    with pytest.raises(GeolocationUnsupported):
        asyncio.run(acquire_position(None))


def test_nearest_catalog_stop(catalog: Catalog) -> None:
    finder, client = _finder(catalog)

    name = asyncio.run(finder.nearest_catalog_stop(NEAR_BEL_AIR))

    assert name == "Genève, Bel-Air"
    client.search_stations.assert_not_called()


def test_nearest_catalog_stop_without_coordinates() -> None:
    finder, _ = _finder(Catalog(entries=(), fetched_at=0.0))

    assert asyncio.run(finder.nearest_catalog_stop(NEAR_BEL_AIR)) is None


def test_nearby_catalog_stops_prefers_confirmed_names(catalog: Catalog) -> None:
    finder, client = _finder(catalog)

    def search(query: str) -> list[Station]:
        if query == "Genève, Bel-Air":
            return [Station(id="8592", name="Genève, Bel-Air")]
        return []

    client.search_stations.side_effect = search

    stops = asyncio.run(finder.nearby_catalog_stops(NEAR_BEL_AIR, k=2))

    assert [stop.name for stop in stops] == ["Genève, Bel-Air", "Genève, Gare Cornavin"]
    assert isinstance(stops[0], NearbyStop)
    assert stops[0].distance_km < stops[1].distance_km


def test_nearest_known_station_skips_unknown_stations(catalog: Catalog) -> None:
    finder, client = _finder(catalog)
    client.nearby_stations.return_value = [
        Station(id="1", name="Genève, Hôtel des Finances", coordinate=Coordinate(lat=46.2046, lon=6.1426)),
        Station(id="2", name="Genève, gare Cornavin", coordinate=Coordinate(lat=46.2102, lon=6.1424)),
        Station(id="3", name="Genève, Bel-Air", coordinate=Coordinate(lat=46.2044, lon=6.1425)),
    ]

    name = asyncio.run(finder.nearest_known_station(NEAR_BEL_AIR))

    assert name == "Genève, Bel-Air"
    client.nearby_stations.assert_called_once_with(NEAR_BEL_AIR, 20)

"""Async stop resolution: catalog membership, canonical naming and API confirmation."""

from __future__ import annotations

import asyncio

from loguru import logger

from src.data.catalog import CatalogCache
from src.data.models import CanonicalStop, Catalog, Station
from src.data.transport_client import TransportClient
from src.logic.matching import canonicalize, is_known_stop, select_station


class StopResolver:
    """Resolves free-text stop names to confirmed stops.

    Blocking catalog and HTTP work runs in worker threads; callers await the
    results on the event loop, so cancelling the awaiting task abandons them.
    """

    def __init__(self, client: TransportClient, cache: CatalogCache) -> None:
        self._client = client
        self._cache = cache

    async def catalog(self) -> Catalog:
        return await asyncio.to_thread(self._cache.get)

    async def search(self, query: str) -> list[Station]:
        return await asyncio.to_thread(self._client.search_stations, query)

    async def is_known(self, name: str, catalog: Catalog | None = None) -> bool:
        catalog = catalog if catalog is not None else await self.catalog()
        return is_known_stop(name, catalog)

    async def canonical_name(self, name: str, catalog: Catalog | None = None) -> str:
        catalog = catalog if catalog is not None else await self.catalog()
        return canonicalize(name, catalog)

    async def confirm(self, canonical_name: str) -> CanonicalStop | None:
        """Look the name up in the station search and pick the matching station."""
        stations = await self.search(canonical_name)
        stop = select_station(canonical_name, stations)
        if stop is None:
            logger.debug("Station search returned nothing for {!r}", canonical_name)
        return stop

    async def resolve(self, name: str, catalog: Catalog | None = None) -> CanonicalStop | None:
        """Resolve a free-text name; unknown names return None without an API call."""
        catalog = catalog if catalog is not None else await self.catalog()
        if not is_known_stop(name, catalog):
            logger.debug("{!r} is not a known stop", name)
            return None
        return await self.confirm(canonicalize(name, catalog))


__all__ = ["StopResolver"]

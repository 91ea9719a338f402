"""Stop catalog parsing and the locally persisted catalog cache."""

from __future__ import annotations

import json
import math
import os
from pathlib import Path
import tempfile
import time
from typing import Any, Callable

from loguru import logger

from src.data.models import Catalog, CatalogEntry, Coordinate
from src.data.transport_client import TransportClient, TransportClientError

RETENTION_DAYS_DEFAULT = 30
SECONDS_PER_DAY = 24 * 60 * 60
MIN_FIELDS = 7

NAME_FIELD = 1
MUNICIPALITY_FIELD = 2
COORDINATE_FIELD = 5
ACTIVE_FIELD = 6


class CatalogUnavailable(Exception):
    """Raised when the catalog feed cannot be fetched or parsed."""


def parse_coordinate(raw: str) -> Coordinate | None:
    """Parse a "lat,lon" string; returns None unless both parts are finite numbers."""
    parts = raw.split(",")
    if len(parts) < 2:
        return None
    try:
        lat = float(parts[0].strip())
        lon = float(parts[1].strip())
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return Coordinate(lat=lat, lon=lon)


def parse_catalog(text: str, fetched_at: float) -> Catalog:
    """Parse the semicolon-delimited feed, skipping the header and short records."""
    lines = text.splitlines()[1:]
    entries: list[CatalogEntry] = []
    for line in lines:
        if not line.strip():
            continue
        parts = line.split(";")
        if len(parts) < MIN_FIELDS:
            continue
        stop_name = parts[NAME_FIELD].strip()
        if not stop_name:
            continue
        entries.append(
            CatalogEntry(
                stop_name=stop_name,
                municipality=parts[MUNICIPALITY_FIELD].strip(),
                coordinate=parse_coordinate(parts[COORDINATE_FIELD]),
                active=parts[ACTIVE_FIELD].strip() == "Y",
            )
        )

    if not entries:
        raise CatalogUnavailable("Catalog feed contained no stop records")
    return Catalog(entries=tuple(entries), fetched_at=fetched_at)


class CatalogCache:
    """File-backed cache of the raw catalog feed with a fixed retention window."""

    def __init__(
        self,
        client: TransportClient,
        cache_path: str | Path,
        retention_days: float = RETENTION_DAYS_DEFAULT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._path = Path(cache_path)
        self._retention_seconds = retention_days * SECONDS_PER_DAY
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> Catalog:
        """Return the cached catalog, fetching the feed when missing or expired."""
        record = self._read_record()
        if record is not None:
            fetched_at = record["timestamp"] / 1000.0
            age = self._clock() - fetched_at
            if age < self._retention_seconds:
                remaining_days = round((self._retention_seconds - age) / SECONDS_PER_DAY)
                logger.debug("Using cached catalog, expires in {} days", remaining_days)
                return parse_catalog(record["data"], fetched_at)
            logger.info("Catalog cache expired, fetching fresh data")

        try:
            text = self._client.fetch_catalog_text()
        except TransportClientError as exc:
            raise CatalogUnavailable(f"Catalog feed fetch failed: {exc}") from exc

        fetched_at = self._clock()
        catalog = parse_catalog(text, fetched_at)
        try:
            self._write_record({"data": text, "timestamp": int(fetched_at * 1000)})
        except OSError as exc:
            logger.warning("Could not persist catalog cache {}: {}", self._path, exc)
        logger.info("Fetched and cached {} catalog entries", len(catalog.entries))
        return catalog

    def invalidate(self) -> None:
        """Discard the persisted catalog without fetching."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        logger.info("Catalog cache invalidated")

    def force_refresh(self) -> Catalog:
        """Invalidate and fetch the catalog unconditionally."""
        logger.info("Manually refreshing catalog")
        self.invalidate()
        return self.get()

    def _read_record(self) -> dict[str, Any] | None:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                record = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable catalog cache {}: {}", self._path, exc)
            return None

        if (
            not isinstance(record, dict)
            or not isinstance(record.get("data"), str)
            or not isinstance(record.get("timestamp"), (int, float))
        ):
            logger.warning("Ignoring malformed catalog cache record in {}", self._path)
            return None
        return record

    def _write_record(self, record: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".catalog-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = ["CatalogCache", "CatalogUnavailable", "parse_catalog", "parse_coordinate"]

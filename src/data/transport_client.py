"""HTTP client for the station-search, departure-board and catalog endpoints."""

from __future__ import annotations

import math
from typing import Any

import requests
from loguru import logger

from src.data.models import Coordinate, Station

LOCATIONS_URL = "https://transport.opendata.ch/v1/locations"
STATIONBOARD_URL = "https://search.ch/timetable/api/stationboard.fr.json"
CATALOG_URL = "https://raw.githubusercontent.com/rohanod/arrets/refs/heads/main/arrets.csv"
STATIONBOARD_LIMIT = 300
NEARBY_LIMIT = 20


class TransportClientError(Exception):
    """Raised when a transport API request fails or returns an unusable payload."""


def _parse_coordinate(raw: Any) -> Coordinate | None:
    # The locations API reports latitude as "y" and longitude as "x".
    if not isinstance(raw, dict):
        return None
    lat, lon = raw.get("y"), raw.get("x")
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return None
    if isinstance(lat, bool) or isinstance(lon, bool):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return Coordinate(lat=float(lat), lon=float(lon))


def parse_stations(payload: Any) -> list[Station]:
    """Validate a locations API payload into Station records, skipping malformed ones."""
    if not isinstance(payload, dict):
        raise TransportClientError("Locations response must be a JSON object")
    raw_stations = payload.get("stations") or []
    if not isinstance(raw_stations, list):
        raise TransportClientError("Locations response 'stations' must be a list")

    stations: list[Station] = []
    for raw in raw_stations:
        if not isinstance(raw, dict):
            continue
        station_id = raw.get("id")
        name = raw.get("name")
        if station_id is None or not isinstance(name, str) or not name.strip():
            logger.debug("Skipping malformed station entry: {}", raw)
            continue
        stations.append(
            Station(
                id=str(station_id),
                name=name,
                coordinate=_parse_coordinate(raw.get("coordinate")),
            )
        )
    return stations


class TransportClient:
    """Thin wrapper around the public transport APIs using requests."""

    def __init__(
        self,
        locations_url: str = LOCATIONS_URL,
        stationboard_url: str = STATIONBOARD_URL,
        catalog_url: str = CATALOG_URL,
        timeout_seconds: float = 10,
        stationboard_limit: int = STATIONBOARD_LIMIT,
    ) -> None:
        self._locations_url = locations_url
        self._stationboard_url = stationboard_url
        self._catalog_url = catalog_url
        self._timeout_seconds = timeout_seconds
        self._stationboard_limit = stationboard_limit

    def search_stations(self, query: str) -> list[Station]:
        """Search stations by free text; results keep the API ranking."""
        params = {"query": query, "type": "station"}
        return parse_stations(self._get_json(self._locations_url, params=params))

    def nearby_stations(self, origin: Coordinate, limit: int = NEARBY_LIMIT) -> list[Station]:
        """Search stations around a coordinate; results keep the API ranking."""
        params = {"x": origin.lon, "y": origin.lat, "limit": limit, "type": "station"}
        return parse_stations(self._get_json(self._locations_url, params=params))

    def get_stationboard(self, stop_name: str) -> list[dict[str, Any]]:
        """Fetch upcoming bus and tram departures; returns the raw connections array."""
        params = {
            "stop": stop_name,
            "limit": self._stationboard_limit,
            "show_delays": 1,
            "transportation_types": "tram,bus",
            "mode": "depart",
        }
        response_json = self._get_json(self._stationboard_url, params=params)
        if not isinstance(response_json, dict):
            raise TransportClientError("Stationboard response must be a JSON object")
        connections = response_json.get("connections")
        if connections is None:
            return []
        if not isinstance(connections, list):
            raise TransportClientError("Stationboard 'connections' must be a list")
        return connections

    def fetch_catalog_text(self) -> str:
        """Download the raw semicolon-delimited stop catalog."""
        return self._get(self._catalog_url).text

    def _get(self, url: str, params: dict[str, Any] | None = None) -> requests.Response:
        try:
            response = requests.get(url, params=params, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise TransportClientError(f"Transport API request failed: {exc}") from exc

        if response.status_code != 200:
            body_text = response.text.strip()
            detail = f"Status {response.status_code}"
            if body_text:
                detail = f"{detail}, Body: {body_text}"
            raise TransportClientError(f"Transport API request failed: {detail}")
        return response

    def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        response = self._get(url, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportClientError("Transport API response was not valid JSON") from exc


__all__ = ["TransportClient", "TransportClientError", "parse_stations"]

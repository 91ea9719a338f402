"""Fuzzy stop-name matching against the catalog.

Names match when either lower-cased string contains the other. The test is
permissive on purpose: a typed prefix ("Cornav") and a catalog name carrying an
extra qualifier both resolve. The first active catalog entry that matches wins,
so results follow catalog order rather than any closeness metric.
"""

from __future__ import annotations

from typing import Sequence

from src.data.models import CanonicalStop, Catalog, CatalogEntry, Station


def normalize_name(name: str) -> str:
    return name.strip().lower()


def names_match(candidate: str, stop_name: str) -> bool:
    """Bidirectional substring test between two stop names, case-insensitive.

    An empty name is a substring of everything, so callers reject empty input.
    """
    q = normalize_name(candidate)
    s = normalize_name(stop_name)
    return q in s or s in q


def first_match(candidate: str, catalog: Catalog, require_municipality: bool = False) -> CatalogEntry | None:
    if not normalize_name(candidate):
        return None
    for entry in catalog.entries:
        if not entry.active or not normalize_name(entry.stop_name):
            continue
        if require_municipality and not entry.municipality:
            continue
        if names_match(candidate, entry.stop_name):
            return entry
    return None


def is_known_stop(candidate: str, catalog: Catalog) -> bool:
    """True when some active catalog entry matches the candidate name."""
    return first_match(candidate, catalog) is not None


def canonicalize(candidate: str, catalog: Catalog) -> str:
    """Return "municipality, stopName" for the first match, or the input unchanged."""
    entry = first_match(candidate, catalog, require_municipality=True)
    return entry.full_name if entry is not None else candidate


def select_station(name: str, stations: Sequence[Station]) -> CanonicalStop | None:
    """Pick the exact case-insensitive name match, falling back to the top result."""
    if not stations:
        return None
    wanted = name.lower()
    chosen = next((station for station in stations if station.name.lower() == wanted), stations[0])
    return CanonicalStop(id=chosen.id, display_name=chosen.name)


__all__ = [
    "canonicalize",
    "first_match",
    "is_known_stop",
    "names_match",
    "normalize_name",
    "select_station",
]

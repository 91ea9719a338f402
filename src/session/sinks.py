"""Output ports that receive computed board data."""

from __future__ import annotations

from enum import Enum
from typing import Protocol, Sequence

from src.data.models import CanonicalStop, Departure


class BoardMessage(str, Enum):
    """User-facing conditions; sinks choose the wording and language."""

    ENTER_STOP_NAME = "enter_stop_name"
    STOP_NOT_FOUND = "stop_not_found"
    NO_DEPARTURES = "no_departures"
    NO_MATCHING_LINES = "no_matching_lines"
    FETCH_ERROR = "fetch_error"
    NO_NEARBY_STOPS = "no_nearby_stops"
    LOCATION_UNAVAILABLE = "location_unavailable"


class BoardSink(Protocol):
    def show_departures(self, stop_name: str, departures: Sequence[Departure]) -> None: ...

    def show_message(self, message: BoardMessage, stop_name: str | None = None) -> None: ...


class SuggestionSink(Protocol):
    def show_suggestions(self, suggestions: Sequence[CanonicalStop]) -> None: ...


__all__ = ["BoardMessage", "BoardSink", "SuggestionSink"]

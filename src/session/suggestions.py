"""Debounced, cancelable stop-name autocomplete."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Iterable, Sequence

from loguru import logger

from src.data.departures import parse_vehicle_numbers
from src.data.models import CanonicalStop, Catalog, Station
from src.session.resolver import StopResolver
from src.session.scheduler import Debouncer, Sleep, TimerGroup
from src.session.sinks import SuggestionSink

SUGGESTION_DEBOUNCE_SECONDS = 0.5
FILTER_DEBOUNCE_SECONDS = 0.2
SUGGESTIONS_LIMIT = 4
MIN_QUERY_LENGTH = 3


class SuggestionState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    IN_FLIGHT = "in_flight"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SuggestionList:
    """Rendered suggestions plus the keyboard-highlighted index."""

    def __init__(self, items: Iterable[CanonicalStop] = ()) -> None:
        self._items = tuple(items)
        self._index = -1

    @property
    def items(self) -> tuple[CanonicalStop, ...]:
        return self._items

    @property
    def selected_index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._items)

    def next(self) -> int:
        if self._items:
            self._index = min(self._index + 1, len(self._items) - 1)
        return self._index

    def previous(self) -> int:
        if self._items:
            self._index = max(self._index - 1, 0)
        return self._index

    def select(self) -> CanonicalStop | None:
        """Return the highlighted suggestion and reset the highlight."""
        if not 0 <= self._index < len(self._items):
            return None
        chosen = self._items[self._index]
        self._index = -1
        return chosen


def unique_by_name(stations: Sequence[Station]) -> list[Station]:
    seen: set[str] = set()
    unique = []
    for station in stations:
        if station.name in seen:
            continue
        seen.add(station.name)
        unique.append(station)
    return unique


def unique_by_id(stops: Iterable[CanonicalStop | None]) -> list[CanonicalStop]:
    seen: set[str] = set()
    unique = []
    for stop in stops:
        if stop is None or stop.id in seen:
            continue
        seen.add(stop.id)
        unique.append(stop)
    return unique


class SuggestionPipeline:
    """Turns keystrokes into at most one in-flight lookup and a ranked suggestion list."""

    def __init__(
        self,
        resolver: StopResolver,
        sink: SuggestionSink,
        timers: TimerGroup,
        debounce_seconds: float = SUGGESTION_DEBOUNCE_SECONDS,
        limit: int = SUGGESTIONS_LIMIT,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._resolver = resolver
        self._sink = sink
        self._limit = limit
        self._debouncer = Debouncer(timers.slot("suggestion-debounce"), debounce_seconds, self._dispatch, sleep)
        self._in_flight = timers.slot("suggestion-request")
        self._raw_query = ""
        self._last_query = ""
        self._state = SuggestionState.IDLE
        self.last_outcome: SuggestionState | None = None
        self._suggestions = SuggestionList()

    @property
    def state(self) -> SuggestionState:
        return self._state

    @property
    def raw_query(self) -> str:
        return self._raw_query

    @property
    def last_dispatched_query(self) -> str:
        return self._last_query

    @property
    def suggestions(self) -> SuggestionList:
        return self._suggestions

    @property
    def request_task(self) -> asyncio.Task | None:
        return self._in_flight.task

    def feed(self, text: str) -> asyncio.Task:
        """Register a keystroke; restarts the debounce window."""
        self._raw_query = text
        self._state = SuggestionState.DEBOUNCING
        return self._debouncer.trigger(text)

    def dismiss(self) -> None:
        self._apply([])

    def cancel(self) -> None:
        self._debouncer.cancel()
        self._in_flight.cancel()
        self._last_query = ""
        self._state = SuggestionState.IDLE

    def _dispatch(self, text: str) -> None:
        query = text.strip()
        if len(query) < MIN_QUERY_LENGTH:
            self._in_flight.cancel()
            self._last_query = ""
            self._apply([])
            self._state = SuggestionState.IDLE
            return
        if query == self._last_query:
            self._state = SuggestionState.IN_FLIGHT if self._in_flight.active else SuggestionState.IDLE
            return

        self._last_query = query
        self._state = SuggestionState.IN_FLIGHT
        self._in_flight.start(self._lookup(query))

    async def _lookup(self, query: str) -> None:
        task = asyncio.current_task()
        try:
            stations = await self._resolver.search(query)
            catalog = await self._resolver.catalog()
            candidates = unique_by_name(stations)
            confirmed = await asyncio.gather(
                *(self._confirm(station.name, catalog) for station in candidates)
            )
        except asyncio.CancelledError:
            logger.debug("Suggestion request for {!r} cancelled", query)
            self.last_outcome = SuggestionState.CANCELLED
            if self._last_query == query:
                # No newer query replaced this one; allow the same text to be sent again.
                self._last_query = ""
                self._settle()
            raise
        except Exception as exc:
            if not self._in_flight.owns(task):
                return
            logger.warning("Suggestion request for {!r} failed: {}", query, exc)
            self._last_query = ""
            self.last_outcome = SuggestionState.FAILED
            self._apply([])
            self._settle()
            return

        if not self._in_flight.owns(task):
            self.last_outcome = SuggestionState.CANCELLED
            return
        self.last_outcome = SuggestionState.RESOLVED
        self._apply(unique_by_id(confirmed)[: self._limit])
        self._settle()

    async def _confirm(self, name: str, catalog: Catalog) -> CanonicalStop | None:
        try:
            return await self._resolver.resolve(name, catalog)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("Could not confirm suggestion {!r}: {}", name, exc)
            return None

    def _settle(self) -> None:
        self._state = SuggestionState.DEBOUNCING if self._debouncer.pending else SuggestionState.IDLE

    def _apply(self, stops: Sequence[CanonicalStop]) -> None:
        # Replace the list wholesale so the highlight index never points into a stale list.
        self._suggestions = SuggestionList(stops)
        self._sink.show_suggestions(self._suggestions.items)


class VehicleFilterInput:
    """Debounced line-number filter field; parses locally without network calls."""

    def __init__(
        self,
        on_change: Callable[[tuple[str, ...]], None],
        timers: TimerGroup,
        debounce_seconds: float = FILTER_DEBOUNCE_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._on_change = on_change
        self._debouncer = Debouncer(timers.slot("filter-debounce"), debounce_seconds, self._apply, sleep)

    def feed(self, text: str) -> asyncio.Task:
        return self._debouncer.trigger(text)

    def _apply(self, text: str) -> None:
        self._on_change(parse_vehicle_numbers(text.strip()))


__all__ = [
    "SuggestionList",
    "SuggestionPipeline",
    "SuggestionState",
    "VehicleFilterInput",
    "unique_by_id",
    "unique_by_name",
]

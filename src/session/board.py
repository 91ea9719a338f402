"""Board session: the explicit context that owns mode, timers and fetched departures."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
import time
from typing import Callable, Sequence

from loguru import logger

from src.data.catalog import CatalogUnavailable
from src.data.departures import TIMEZONE, filter_departures, parse_departures, recompute_minutes
from src.data.models import CanonicalStop, Departure, StopConfig
from src.data.transport_client import TransportClient, TransportClientError
from src.session.resolver import StopResolver
from src.session.rotation import StopRotation
from src.session.scheduler import Clock, CountdownTicker, RefreshScheduler, Sleep, TimerGroup
from src.session.sinks import BoardMessage, BoardSink

SINGLE_STOP_INTERVAL_MS = 30_000
ROTATION_INTERVAL_MS = 20_000
COUNTDOWN_SECONDS = 5.0


class BoardMode(str, Enum):
    SINGLE = "single"
    ROTATION = "rotation"


@dataclass(frozen=True)
class BoardSnapshot:
    """Outcome of the latest fetch cycle."""

    stop: CanonicalStop | None
    departures: list[Departure]
    fetched_at: float
    error: str | None


def _zurich_now() -> datetime:
    return datetime.now(TIMEZONE)


class BoardSession:
    """Fetches and renders departures for one stop or a rotation of stops."""

    def __init__(
        self,
        resolver: StopResolver,
        client: TransportClient,
        sink: BoardSink,
        timers: TimerGroup | None = None,
        single_stop_interval_ms: int = SINGLE_STOP_INTERVAL_MS,
        rotation_interval_ms: int = ROTATION_INTERVAL_MS,
        countdown_seconds: float = COUNTDOWN_SECONDS,
        advance_on_refresh: bool = False,
        now: Callable[[], datetime] = _zurich_now,
        clock: Clock = datetime.now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._resolver = resolver
        self._client = client
        self._sink = sink
        self._timers = timers if timers is not None else TimerGroup()
        self._single_stop_interval_ms = single_stop_interval_ms
        self._rotation_interval_ms = rotation_interval_ms
        self._countdown_seconds = countdown_seconds
        self._advance_on_refresh = advance_on_refresh
        self._now = now
        self._clock = clock
        self._sleep = sleep

        self._mode = BoardMode.SINGLE
        self._stop: StopConfig | None = None
        self._rotation: StopRotation | None = None
        self._is_fetching = False
        self._suspended = False
        self._departures: list[Departure] = []
        self._display_name = ""
        self._latest: BoardSnapshot | None = None
        # Rotation index of the stop whose departures are on display.
        self._shown_index: int | None = None

    @property
    def mode(self) -> BoardMode:
        return self._mode

    @property
    def timers(self) -> TimerGroup:
        return self._timers

    @property
    def rotation(self) -> StopRotation | None:
        return self._rotation

    @property
    def is_fetching(self) -> bool:
        return self._is_fetching

    @property
    def suspended(self) -> bool:
        return self._suspended

    @property
    def departures(self) -> list[Departure]:
        return list(self._departures)

    def get_latest(self) -> BoardSnapshot | None:
        """Return the most recent fetch result, if any."""
        return self._latest

    def current_stop(self) -> StopConfig | None:
        if self._mode is BoardMode.ROTATION and self._rotation is not None:
            return self._rotation.current()
        return self._stop

    def set_stop(self, stop_name: str, vehicle_numbers: Sequence[str] | None = None) -> None:
        """Choose the single-mode stop; filters are kept unless replaced."""
        filters = tuple(vehicle_numbers) if vehicle_numbers is not None else self._current_filters()
        self._stop = StopConfig(stop_name=stop_name.strip(), vehicle_number_filters=filters)

    def set_filters(self, vehicle_numbers: Sequence[str]) -> None:
        """Replace the active stop's line filters and re-render the fetched board."""
        filters = tuple(vehicle_numbers)
        if self._mode is BoardMode.ROTATION and self._rotation is not None:
            index = self._shown_index if self._shown_index is not None else self._rotation.current_index
            self._rotation.update_at(index, vehicle_number_filters=filters)
        elif self._stop is not None:
            self._stop = replace(self._stop, vehicle_number_filters=filters)
        else:
            self._stop = StopConfig(stop_name="", vehicle_number_filters=filters)
        if self._departures:
            self._render()

    def select_suggestion(self, stop: CanonicalStop) -> None:
        """Switch the single-mode board to a chosen suggestion and restart refreshing."""
        self.set_stop(stop.display_name)
        self.start()

    def start(self) -> None:
        """Restart the refresh loop and countdown for the current mode."""
        self._timers.cancel_all()
        self._suspended = False
        interval_ms = (
            self._rotation_interval_ms if self._mode is BoardMode.ROTATION else self._single_stop_interval_ms
        )
        logger.info("Starting {} mode, refresh every {} ms", self._mode.value, interval_ms)
        scheduler = RefreshScheduler(self._scheduled_refresh, interval_ms, clock=self._clock, sleep=self._sleep)
        ticker = CountdownTicker(self.tick_countdown, self._countdown_seconds, sleep=self._sleep)
        self._timers.slot("initial-fetch").start(scheduler.run_once())
        self._timers.slot("refresh").start(scheduler.run())
        self._timers.slot("countdown").start(ticker.run())

    def stop(self) -> None:
        """Cancel every timer owned by the session."""
        self._timers.cancel_all()

    def suspend(self) -> None:
        """Stop all timers until resume() is called."""
        if self._suspended:
            return
        logger.info("Suspending board session")
        self._suspended = True
        self._timers.cancel_all()

    def resume(self) -> None:
        """Restart the timers of the current mode after a suspension."""
        if not self._suspended:
            return
        self._suspended = False
        stop = self.current_stop()
        if stop is None or not stop.stop_name:
            logger.info("Resumed without a stop; timers stay idle")
            return
        self.start()

    def enter_rotation(self, stops: Sequence[StopConfig] | None = None) -> bool:
        """Switch to rotation mode; without stops the current single stop is used."""
        if stops is None:
            if self._stop is None or not self._stop.stop_name:
                return False
            stops = [self._stop]
        self._rotation = StopRotation(stops)
        self._shown_index = None
        self._mode = BoardMode.ROTATION
        self.start()
        return True

    def exit_rotation(self) -> None:
        """Return to single-stop mode with the previously chosen stop."""
        self._mode = BoardMode.SINGLE
        self._rotation = None
        self._shown_index = None
        if self._stop is not None and self._stop.stop_name:
            self.start()
        else:
            self._timers.cancel_all()

    async def fetch_and_display(self) -> bool:
        """Run one fetch-and-render cycle; returns False when skipped because one is running."""
        if self._is_fetching:
            logger.debug("Fetch already in progress; skipping")
            return False
        self._is_fetching = True
        try:
            await self._fetch_cycle()
        finally:
            self._is_fetching = False
        return True

    def tick_countdown(self) -> None:
        """Recompute minutes from the fetched timestamps and re-render without a fetch."""
        if not self._departures:
            return
        self._departures = recompute_minutes(self._departures, self._now())
        self._render()

    async def _scheduled_refresh(self) -> None:
        ran = await self.fetch_and_display()
        if ran and self._mode is BoardMode.ROTATION and self._advance_on_refresh and self._rotation is not None:
            self._rotation.advance()

    async def _fetch_cycle(self) -> None:
        rotation = self._rotation if self._mode is BoardMode.ROTATION else None
        index = rotation.current_index if rotation is not None else None
        stop = self.current_stop()
        stop_name = stop.stop_name.strip() if stop is not None else ""
        if not stop_name:
            self._sink.show_message(BoardMessage.ENTER_STOP_NAME)
            return

        self._shown_index = index
        try:
            canonical = await self._resolver.resolve(stop_name)
            if canonical is None:
                self._fail(BoardMessage.STOP_NOT_FOUND, stop_name, None)
                return
            if rotation is not None and rotation is self._rotation and index is not None:
                rotation.rename_at(index, canonical.display_name)
            connections = await asyncio.to_thread(self._client.get_stationboard, canonical.display_name)
        except (CatalogUnavailable, TransportClientError) as exc:
            logger.warning("Departure fetch for {!r} failed: {}", stop_name, exc)
            self._fail(BoardMessage.FETCH_ERROR, stop_name, str(exc))
            return

        departures = parse_departures(connections, self._now())
        self._display_name = canonical.display_name
        self._latest = BoardSnapshot(
            stop=canonical,
            departures=departures,
            fetched_at=time.time(),
            error=None,
        )
        self._departures = departures
        if not departures:
            self._sink.show_message(BoardMessage.NO_DEPARTURES, canonical.display_name)
            return
        self._render()

    def _fail(self, message: BoardMessage, stop_name: str, error: str | None) -> None:
        self._departures = []
        self._latest = BoardSnapshot(stop=None, departures=[], fetched_at=time.time(), error=error or message.value)
        self._sink.show_message(message, stop_name)

    def _render(self) -> None:
        visible = filter_departures(self._departures, self._shown_filters())
        if not visible:
            self._sink.show_message(BoardMessage.NO_MATCHING_LINES, self._display_name)
            return
        self._sink.show_departures(self._display_name, visible)

    def _current_filters(self) -> tuple[str, ...]:
        stop = self.current_stop()
        return stop.vehicle_number_filters if stop is not None else ()

    def _shown_filters(self) -> tuple[str, ...]:
        if self._mode is BoardMode.ROTATION and self._rotation is not None and self._shown_index is not None:
            return self._rotation.stops[self._shown_index].vehicle_number_filters
        return self._current_filters()


__all__ = ["BoardMode", "BoardSession", "BoardSnapshot"]

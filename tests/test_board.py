from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
import time
from typing import Sequence
from unittest.mock import MagicMock

from src.data.departures import TIMEZONE
from src.data.models import CanonicalStop, Catalog, Departure, Station, StopConfig
from src.data.transport_client import TransportClientError
from src.session.board import BoardMode, BoardSession
from src.session.resolver import StopResolver
from src.session.sinks import BoardMessage

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=TIMEZONE)
CORNAVIN = CanonicalStop(id="8587057", display_name="Genève, gare Cornavin")
CONNECTIONS = [
    {"line": "10", "time": "2024-05-01 12:05:00", "terminal": {"name": "Aéroport"}, "type": "bus"},
    {"line": "18", "time": "2024-05-01 12:08:00", "terminal": {"name": "CERN"}, "type": "tram"},
]


class RecordingSink:
    def __init__(self) -> None:
        self.boards: list[tuple[str, list[Departure]]] = []
        self.messages: list[tuple[BoardMessage, str | None]] = []

    def show_departures(self, stop_name: str, departures: Sequence[Departure]) -> None:
        self.boards.append((stop_name, list(departures)))

    def show_message(self, message: BoardMessage, stop_name: str | None = None) -> None:
        self.messages.append((message, stop_name))


class FakeNow:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def __call__(self) -> datetime:
        return self.value


async def _idle_sleep(seconds: float) -> None:
    await asyncio.Event().wait()


def _board(catalog: Catalog, connections: list | None = None) -> tuple[BoardSession, MagicMock, RecordingSink]:
    client = MagicMock()
    client.search_stations.return_value = [Station(id=CORNAVIN.id, name=CORNAVIN.display_name)]
    client.get_stationboard.return_value = CONNECTIONS if connections is None else connections
    cache = MagicMock()
    cache.get.return_value = catalog
    sink = RecordingSink()
    board = BoardSession(StopResolver(client, cache), client, sink, now=FakeNow(NOW), sleep=_idle_sleep)
    return board, client, sink


def _lines(departures: Sequence[Departure]) -> list[str]:
    return [departure.line for departure in departures]


def test_get_latest_initially_none(catalog: Catalog) -> None:
    board, _, _ = _board(catalog)

    assert board.get_latest() is None
    assert board.mode is BoardMode.SINGLE


def test_fetch_renders_departures_for_canonical_stop(catalog: Catalog) -> None:
    board, client, sink = _board(catalog)
    board.set_stop("Cornavin")

    asyncio.run(board.fetch_and_display())

    client.get_stationboard.assert_called_once_with(CORNAVIN.display_name)
    assert [(name, _lines(departures)) for name, departures in sink.boards] == [
        (CORNAVIN.display_name, ["10", "18"])
    ]
    latest = board.get_latest()
    assert latest is not None
    assert latest.stop == CORNAVIN
    assert latest.error is None
    assert latest.fetched_at > 0


def test_unknown_stop_reports_not_found_without_api_calls(catalog: Catalog) -> None:
    board, client, sink = _board(catalog)
    board.set_stop("XYZ-not-a-stop")

    asyncio.run(board.fetch_and_display())

    assert sink.messages == [(BoardMessage.STOP_NOT_FOUND, "XYZ-not-a-stop")]
    client.search_stations.assert_not_called()
    client.get_stationboard.assert_not_called()
    latest = board.get_latest()
    assert latest is not None
    assert latest.error == BoardMessage.STOP_NOT_FOUND.value


def test_empty_stop_asks_for_name(catalog: Catalog) -> None:
    board, client, sink = _board(catalog)

    asyncio.run(board.fetch_and_display())

    assert sink.messages == [(BoardMessage.ENTER_STOP_NAME, None)]
    client.get_stationboard.assert_not_called()


def test_fetch_error_clears_departures(catalog: Catalog) -> None:
    board, client, sink = _board(catalog)
    board.set_stop("Cornavin")
    asyncio.run(board.fetch_and_display())
    client.get_stationboard.side_effect = TransportClientError("HTTP 503")

    asyncio.run(board.fetch_and_display())

    assert sink.messages == [(BoardMessage.FETCH_ERROR, "Cornavin")]
    assert board.departures == []
    latest = board.get_latest()
    assert latest is not None
    assert latest.error == "HTTP 503"


def test_no_departures_message(catalog: Catalog) -> None:
    board, _, sink = _board(catalog, connections=[])
    board.set_stop("Cornavin")

    asyncio.run(board.fetch_and_display())

    assert sink.messages == [(BoardMessage.NO_DEPARTURES, CORNAVIN.display_name)]


def test_filters_applied_at_render_time(catalog: Catalog) -> None:
    board, client, sink = _board(catalog)
    board.set_stop("Cornavin", ["99"])

    asyncio.run(board.fetch_and_display())
    board.set_filters(["18"])

    assert sink.messages == [(BoardMessage.NO_MATCHING_LINES, CORNAVIN.display_name)]
    assert _lines(sink.boards[-1][1]) == ["18"]
    assert client.get_stationboard.call_count == 1


def test_concurrent_fetches_run_once(catalog: Catalog) -> None:
    board, client, _ = _board(catalog)

    def slow_stationboard(stop_name: str) -> list:
        time.sleep(0.05)
        return CONNECTIONS

    client.get_stationboard.side_effect = slow_stationboard
    board.set_stop("Cornavin")

    async def scenario() -> None:
        await asyncio.gather(board.fetch_and_display(), board.fetch_and_display())

    asyncio.run(scenario())

    assert client.get_stationboard.call_count == 1
    assert board.is_fetching is False


def test_countdown_tick_recomputes_without_fetch(catalog: Catalog) -> None:
    now = FakeNow(NOW)
    board, client, sink = _board(catalog)
    board._now = now
    board.set_stop("Cornavin")
    asyncio.run(board.fetch_and_display())

    now.value = NOW + timedelta(minutes=2)
    board.tick_countdown()

    assert [d.minutes_until_departure for d in sink.boards[0][1]] == [5, 8]
    assert [d.minutes_until_departure for d in sink.boards[-1][1]] == [3, 6]
    assert client.get_stationboard.call_count == 1


def test_rotation_stores_canonical_name(catalog: Catalog) -> None:
    board, client, _ = _board(catalog)

    async def scenario() -> None:
        board.enter_rotation([StopConfig(stop_name="Cornavin", vehicle_number_filters=("10",))])
        board.stop()
        await board.fetch_and_display()

    asyncio.run(scenario())

    assert board.mode is BoardMode.ROTATION
    assert board.current_stop() == StopConfig(stop_name=CORNAVIN.display_name, vehicle_number_filters=("10",))
    client.get_stationboard.assert_called_once_with(CORNAVIN.display_name)


def test_enter_rotation_needs_a_stop(catalog: Catalog) -> None:
    board, _, _ = _board(catalog)

    assert board.enter_rotation() is False
    assert board.mode is BoardMode.SINGLE


def test_exit_rotation_returns_to_single_stop(catalog: Catalog) -> None:
    board, _, _ = _board(catalog)

    async def scenario() -> list[str]:
        board.set_stop("Bel-Air")
        board.enter_rotation([StopConfig(stop_name="Cornavin")])
        board.exit_rotation()
        running = board.timers.running()
        board.stop()
        await asyncio.sleep(0)
        return running

    running = asyncio.run(scenario())

    assert board.mode is BoardMode.SINGLE
    assert board.rotation is None
    assert board.current_stop() == StopConfig(stop_name="Bel-Air")
    assert running == ["countdown", "initial-fetch", "refresh"]


def test_suspend_and_resume_timers(catalog: Catalog) -> None:
    board, _, _ = _board(catalog)

    async def scenario() -> tuple[list[str], list[str], list[str]]:
        board.set_stop("Cornavin")
        board.start()
        started = board.timers.running()
        board.suspend()
        await asyncio.sleep(0)
        suspended = board.timers.running()
        board.resume()
        resumed = board.timers.running()
        board.stop()
        await asyncio.sleep(0)
        return started, suspended, resumed

    started, suspended, resumed = asyncio.run(scenario())

    assert started == ["countdown", "initial-fetch", "refresh"]
    assert suspended == []
    assert resumed == ["countdown", "initial-fetch", "refresh"]


def test_resume_without_stop_keeps_timers_idle(catalog: Catalog) -> None:
    board, _, _ = _board(catalog)

    async def scenario() -> list[str]:
        board.suspend()
        board.resume()
        return board.timers.running()

    assert asyncio.run(scenario()) == []
    assert board.suspended is False


def test_select_suggestion_switches_stop(catalog: Catalog) -> None:
    board, _, _ = _board(catalog)

    async def scenario() -> list[str]:
        board.set_stop("Bel-Air", ["14"])
        board.select_suggestion(CORNAVIN)
        running = board.timers.running()
        board.stop()
        await asyncio.sleep(0)
        return running

    running = asyncio.run(scenario())

    assert board.current_stop() == StopConfig(stop_name=CORNAVIN.display_name, vehicle_number_filters=("14",))
    assert "refresh" in running


def test_scheduled_refresh_advances_rotation_when_enabled(catalog: Catalog) -> None:
    board, client, _ = _board(catalog)
    board._advance_on_refresh = True

    async def scenario() -> None:
        board.enter_rotation([StopConfig(stop_name="Cornavin"), StopConfig(stop_name="Bel-Air")])
        board.stop()
        await board._scheduled_refresh()

    asyncio.run(scenario())

    assert board.rotation is not None
    assert board.rotation.current_index == 1
    assert board.current_stop() == StopConfig(stop_name="Bel-Air")
    client.get_stationboard.assert_called_once_with(CORNAVIN.display_name)


def test_overlapping_scheduled_refreshes_keep_rotation_intact(catalog: Catalog) -> None:
    board, client, sink = _board(catalog)
    board._advance_on_refresh = True

    async def scenario() -> None:
        board.enter_rotation(
            [StopConfig(stop_name="Cornavin", vehicle_number_filters=("10",)), StopConfig(stop_name="Bel-Air")]
        )
        board.stop()
        await asyncio.gather(board._scheduled_refresh(), board._scheduled_refresh())

    asyncio.run(scenario())

    assert board.rotation is not None
    assert board.rotation.stops == (
        StopConfig(stop_name=CORNAVIN.display_name, vehicle_number_filters=("10",)),
        StopConfig(stop_name="Bel-Air"),
    )
    assert board.rotation.current_index == 1
    client.get_stationboard.assert_called_once_with(CORNAVIN.display_name)
    assert _lines(sink.boards[-1][1]) == ["10"]

    board.tick_countdown()

    assert sink.boards[-1][0] == CORNAVIN.display_name
    assert _lines(sink.boards[-1][1]) == ["10"]


def test_initial_fetch_failure_is_logged_not_raised(catalog: Catalog) -> None:
    board, client, _ = _board(catalog)
    client.get_stationboard.side_effect = RuntimeError("unexpected payload")

    async def scenario() -> asyncio.Task:
        board.set_stop("Cornavin")
        board.start()
        task = board.timers.slot("initial-fetch").task
        assert task is not None
        await task
        board.stop()
        await asyncio.sleep(0)
        return task

    task = asyncio.run(scenario())

    assert task.exception() is None
    assert board.is_fetching is False
    client.get_stationboard.assert_called_once_with(CORNAVIN.display_name)

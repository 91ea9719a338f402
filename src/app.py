"""Wiring of configured components for the command line scripts."""

from __future__ import annotations

from dataclasses import dataclass

from src.config import AppConfig
from src.data.catalog import CatalogCache
from src.data.transport_client import TransportClient
from src.session.board import BoardSession
from src.session.nearby import NearbyStopFinder
from src.session.resolver import StopResolver
from src.session.scheduler import TimerGroup
from src.session.sinks import BoardSink, SuggestionSink
from src.session.suggestions import SuggestionPipeline, VehicleFilterInput


@dataclass
class StopBoardApp:
    """Components sharing one client, catalog cache and timer group."""

    client: TransportClient
    cache: CatalogCache
    resolver: StopResolver
    timers: TimerGroup
    board: BoardSession
    suggestions: SuggestionPipeline
    filters: VehicleFilterInput
    nearby: NearbyStopFinder


def build_app(config: AppConfig, board_sink: BoardSink, suggestion_sink: SuggestionSink) -> StopBoardApp:
    """Create the application components from configuration."""
    transport = config.transport
    client = TransportClient(
        locations_url=transport.locations_url,
        stationboard_url=transport.stationboard_url,
        catalog_url=transport.catalog_url,
        timeout_seconds=transport.timeout_seconds,
        stationboard_limit=transport.stationboard_limit,
    )
    cache = CatalogCache(client, config.catalog.cache_path, retention_days=config.catalog.retention_days)
    resolver = StopResolver(client, cache)
    timers = TimerGroup()
    refresh = config.refresh
    board = BoardSession(
        resolver,
        client,
        board_sink,
        timers=timers,
        single_stop_interval_ms=refresh.single_stop_interval_seconds * 1000,
        rotation_interval_ms=refresh.rotation_interval_seconds * 1000,
        countdown_seconds=refresh.countdown_seconds,
        advance_on_refresh=config.rotation.advance_on_refresh,
    )
    suggestions = SuggestionPipeline(
        resolver,
        suggestion_sink,
        timers,
        debounce_seconds=refresh.suggestion_debounce_ms / 1000,
        limit=config.display.suggestions_limit,
    )
    filters = VehicleFilterInput(board.set_filters, timers, debounce_seconds=refresh.filter_debounce_ms / 1000)
    return StopBoardApp(
        client=client,
        cache=cache,
        resolver=resolver,
        timers=timers,
        board=board,
        suggestions=suggestions,
        filters=filters,
        nearby=NearbyStopFinder(resolver, client),
    )


__all__ = ["StopBoardApp", "build_app"]

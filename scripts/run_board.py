"""Console departure board for TPG stops."""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from loguru import logger

from src.app import build_app
from src.config import AppConfig, load_config
from src.data.departures import describe_departure, group_departures, parse_vehicle_numbers
from src.data.models import CanonicalStop, Coordinate, Departure, StopConfig
from src.logging_setup import setup_logging
from src.session.nearby import GeolocationError, acquire_position
from src.session.sinks import BoardMessage

MESSAGES = {
    "en": {
        BoardMessage.ENTER_STOP_NAME: "Please enter a stop name.",
        BoardMessage.STOP_NOT_FOUND: 'No upcoming buses or trams departing from "{stop}" were found.',
        BoardMessage.NO_DEPARTURES: "No upcoming buses or trams found.",
        BoardMessage.NO_MATCHING_LINES: "No buses or trams found for the specified numbers.",
        BoardMessage.FETCH_ERROR: "An error occurred while fetching bus or tram information.",
        BoardMessage.NO_NEARBY_STOPS: "No TPG stops found nearby.",
        BoardMessage.LOCATION_UNAVAILABLE: "Unable to retrieve your location.",
    },
    "fr": {
        BoardMessage.ENTER_STOP_NAME: "Veuillez entrer un nom d'arrêt.",
        BoardMessage.STOP_NOT_FOUND: "Aucun bus ou tram au départ de \"{stop}\" n'a été trouvé.",
        BoardMessage.NO_DEPARTURES: "Aucun bus ou tram à venir n'a été trouvé.",
        BoardMessage.NO_MATCHING_LINES: "Aucun bus ou tram trouvé pour les numéros spécifiés.",
        BoardMessage.FETCH_ERROR: "Une erreur s'est produite lors de la récupération des informations.",
        BoardMessage.NO_NEARBY_STOPS: "Aucun arrêt TPG trouvé à proximité.",
        BoardMessage.LOCATION_UNAVAILABLE: "Impossible de récupérer votre position.",
    },
}


class ConsoleSink:
    """Prints boards, messages and suggestions to stdout."""

    def __init__(self, language: str, time_format: str) -> None:
        self._language = language
        self._time_format = time_format

    def show_departures(self, stop_name: str, departures: Sequence[Departure]) -> None:
        print(f"\n== {stop_name} ==", flush=True)
        for key, destinations in group_departures(departures).items():
            for destination, items in destinations.items():
                labels = ", ".join(describe_departure(item, self._time_format) for item in items[:6])
                print(f"{key:<10} -> {destination}: {labels}", flush=True)

    def show_message(self, message: BoardMessage, stop_name: str | None = None) -> None:
        text = MESSAGES[self._language][message].format(stop=stop_name or "")
        print(text, flush=True)

    def show_suggestions(self, suggestions: Sequence[CanonicalStop]) -> None:
        for index, stop in enumerate(suggestions, start=1):
            print(f"{index}. {stop.display_name} ({stop.id})", flush=True)


async def _run(args: argparse.Namespace, config: AppConfig) -> int:
    sink = ConsoleSink(config.display.language, config.display.time_format)
    app = build_app(config, sink, sink)
    numbers = parse_vehicle_numbers(args.numbers or "")

    if args.suggest:
        await app.suggestions.feed(args.suggest)
        task = app.suggestions.request_task
        if task is not None:
            await task
        return 0

    if args.lat is not None and args.lon is not None:
        origin = Coordinate(lat=args.lat, lon=args.lon)

        async def _static_position() -> Coordinate:
            return origin

        try:
            position = await acquire_position(_static_position, config.refresh.geolocation_timeout_seconds)
        except GeolocationError as exc:
            logger.warning("Geolocation failed: {}", exc)
            sink.show_message(BoardMessage.LOCATION_UNAVAILABLE)
            return 1
        stop_name = await app.nearby.nearest_catalog_stop(position)
        if stop_name is None:
            sink.show_message(BoardMessage.NO_NEARBY_STOPS)
            return 1
        args.stop = [stop_name]

    if args.rotate:
        stops = [StopConfig(stop_name=name, vehicle_number_filters=numbers) for name in args.stop or []]
        if not stops:
            stops = list(config.rotation.stops)
        if not stops:
            sink.show_message(BoardMessage.ENTER_STOP_NAME)
            return 1
        app.board.enter_rotation(stops)
    else:
        if not args.stop:
            sink.show_message(BoardMessage.ENTER_STOP_NAME)
            return 1
        app.board.set_stop(args.stop[0], numbers)
        if args.once:
            await app.board.fetch_and_display()
            return 0
        app.board.start()

    try:
        await asyncio.Event().wait()
    finally:
        app.timers.cancel_all()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", default="config/config.yaml", help="Path to the YAML config")
    parser.add_argument("--stop", action="append", help="Stop name; repeat for rotation mode")
    parser.add_argument("--numbers", help="Comma-separated line numbers to show")
    parser.add_argument("--rotate", action="store_true", help="Cycle through stops unattended")
    parser.add_argument("--once", action="store_true", help="Fetch a single board and exit")
    parser.add_argument("--suggest", help="Print stop suggestions for a query and exit")
    parser.add_argument("--lat", type=float, help="Latitude for nearest-stop lookup")
    parser.add_argument("--lon", type=float, help="Longitude for nearest-stop lookup")
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.log)

    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())

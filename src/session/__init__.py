"""Async session components: resolution, suggestions, scheduling and the board."""

from src.session.board import BoardMode, BoardSession, BoardSnapshot
from src.session.resolver import StopResolver
from src.session.rotation import StopRotation
from src.session.scheduler import RefreshScheduler, TimerGroup, aligned_delay_ms
from src.session.sinks import BoardMessage
from src.session.suggestions import SuggestionPipeline, SuggestionState, VehicleFilterInput

__all__ = [
    "BoardMessage",
    "BoardMode",
    "BoardSession",
    "BoardSnapshot",
    "RefreshScheduler",
    "StopResolver",
    "StopRotation",
    "SuggestionPipeline",
    "SuggestionState",
    "TimerGroup",
    "VehicleFilterInput",
    "aligned_delay_ms",
]

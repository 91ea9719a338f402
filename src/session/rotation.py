"""Rotation list state for the unattended multi-stop display."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from src.data.models import StopConfig


class StopRotation:
    """Ordered stop list with a single active index."""

    def __init__(self, stops: Iterable[StopConfig]) -> None:
        self._stops = list(stops)
        if not self._stops:
            raise ValueError("Rotation requires at least one stop")
        self._index = 0

    @property
    def stops(self) -> tuple[StopConfig, ...]:
        return tuple(self._stops)

    @property
    def current_index(self) -> int:
        return self._index

    def current(self) -> StopConfig:
        return self._stops[self._index]

    def advance(self) -> StopConfig:
        """Move to the next stop, wrapping to the first after the last."""
        self._index = (self._index + 1) % len(self._stops)
        return self.current()

    def rename_current(self, stop_name: str) -> StopConfig:
        return self.rename_at(self._index, stop_name)

    def rename_at(self, index: int, stop_name: str) -> StopConfig:
        """Store the canonical name so later refreshes query the confirmed stop."""
        return self.update_at(index, stop_name=stop_name)

    def update_current(self, **changes: object) -> StopConfig:
        return self.update_at(self._index, **changes)

    def update_at(self, index: int, **changes: object) -> StopConfig:
        updated = replace(self._stops[index], **changes)
        self._stops[index] = updated
        return updated


__all__ = ["StopRotation"]

"""Wall-clock aligned refresh loop, countdown tick and cancellable timer slots."""

from __future__ import annotations

import asyncio
from datetime import datetime
import math
from typing import Any, Awaitable, Callable, Coroutine

from loguru import logger

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[Any]]


def aligned_delay_ms(now: datetime, interval_ms: int) -> int:
    """Milliseconds until the next multiple of interval_ms within the current minute.

    A boundary that is already reached yields a full interval instead of zero.
    """
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")
    now_ms = now.second * 1000 + now.microsecond // 1000
    delay = math.ceil(now_ms / interval_ms) * interval_ms - now_ms
    if delay < 1:
        delay = interval_ms
    return delay


class TaskSlot:
    """Holds at most one task; starting a new one cancels its predecessor."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.create_task(coro, name=self.name)
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def owns(self, task: asyncio.Task | None) -> bool:
        return task is not None and task is self._task


class TimerGroup:
    """Named task slots that can be cancelled together."""

    def __init__(self) -> None:
        self._slots: dict[str, TaskSlot] = {}

    def slot(self, name: str) -> TaskSlot:
        if name not in self._slots:
            self._slots[name] = TaskSlot(name)
        return self._slots[name]

    def running(self) -> list[str]:
        return sorted(name for name, slot in self._slots.items() if slot.active)

    def cancel_all(self) -> None:
        for slot in self._slots.values():
            slot.cancel()


class Debouncer:
    """Runs a callback once input has been quiet for the configured window."""

    def __init__(
        self,
        slot: TaskSlot,
        wait_seconds: float,
        callback: Callable[..., Awaitable[Any] | Any],
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._slot = slot
        self._wait_seconds = wait_seconds
        self._callback = callback
        self._sleep = sleep

    @property
    def pending(self) -> bool:
        return self._slot.active

    def trigger(self, *args: Any) -> asyncio.Task:
        return self._slot.start(self._fire(*args))

    def cancel(self) -> None:
        self._slot.cancel()

    async def _fire(self, *args: Any) -> None:
        await self._sleep(self._wait_seconds)
        result = self._callback(*args)
        if asyncio.iscoroutine(result):
            await result


class RefreshScheduler:
    """Runs a task on wall-clock aligned boundaries until cancelled."""

    def __init__(
        self,
        task: Callable[[], Awaitable[Any]],
        interval_ms: int,
        clock: Clock = datetime.now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._task = task
        self._interval_ms = interval_ms
        self._clock = clock
        self._sleep = sleep

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def next_delay_ms(self) -> int:
        return aligned_delay_ms(self._clock(), self._interval_ms)

    async def run(self) -> None:
        """Sleep to the next boundary, await the task, repeat."""
        while True:
            delay_ms = self.next_delay_ms()
            logger.debug("Next refresh in {} ms", delay_ms)
            await self._sleep(delay_ms / 1000)
            await self.run_once()

    async def run_once(self) -> None:
        """Await the task once, logging any failure other than cancellation."""
        try:
            await self._task()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled refresh failed; retrying on next boundary")


class CountdownTicker:
    """Fixed-period tick used to re-render countdowns without network access."""

    def __init__(
        self,
        callback: Callable[[], Any],
        period_seconds: float,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._callback = callback
        self._period_seconds = period_seconds
        self._sleep = sleep

    async def run(self) -> None:
        while True:
            await self._sleep(self._period_seconds)
            self._callback()


__all__ = [
    "CountdownTicker",
    "Debouncer",
    "RefreshScheduler",
    "TaskSlot",
    "TimerGroup",
    "aligned_delay_ms",
]

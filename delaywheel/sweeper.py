"""Recycling of instances that outlive their maximum running time."""

from __future__ import annotations

import asyncio
import heapq
import inspect
import logging
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass, field
from datetime import timedelta

from .clock import RuntimeKind, timestamp

__all__ = ["TimeoutTask", "RecycleUnit", "RecyclingBins"]

logger = logging.getLogger(__name__)

_BATCH = 200


@dataclass(frozen=True)
class TimeoutTask:
    """Event telling the timer that an instance ran past its deadline."""

    task_id: int
    record_id: int


@dataclass(order=True, frozen=True)
class RecycleUnit:
    """An instance due for recycling; ordered and compared by deadline only."""

    deadline: int
    task_id: int = field(default=0, compare=False)
    record_id: int = field(default=0, compare=False)


class RecyclingBins:
    """Collects recycle units and reports each one once its deadline has passed."""

    def __init__(
        self,
        recycle_unit_sources: AsyncIterable[RecycleUnit],
        timer_event_sender: Callable[[object], object],
        runtime_kind: RuntimeKind = RuntimeKind.ASYNCIO,
        *,
        idle_interval: float = 3.0,
    ) -> None:
        self.recycle_unit_sources = recycle_unit_sources
        self.timer_event_sender = timer_event_sender
        self.runtime_kind = runtime_kind
        self.idle_interval = idle_interval
        self._heap: list[RecycleUnit] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._heap)

    async def recycle(self) -> None:
        """Forever report expired units, sleeping until the next deadline."""
        while True:
            duration: float | None = None
            async with self._lock:
                now = timestamp()
                for _ in range(_BATCH):
                    if not self._heap:
                        break
                    earliest = self._heap[0]
                    if earliest.deadline > now:
                        duration = earliest.deadline - now
                        break
                    unit = heapq.heappop(self._heap)
                    await self.send_timer_event(TimeoutTask(unit.task_id, unit.record_id))
            await self.yield_for_while(duration)

    async def add_recycle_unit(self) -> None:
        """Take units from the source until it ends, yielding between batches."""
        received = 0
        async for unit in self.recycle_unit_sources:
            async with self._lock:
                heapq.heappush(self._heap, unit)
            received += 1
            if received % _BATCH == 0:
                await asyncio.sleep(0)

    async def send_timer_event(self, event: object) -> None:
        """Deliver an event to the timer, logging any failure."""
        try:
            result = self.timer_event_sender(event)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(" `send_timer_event` : %s", exc)

    async def yield_for_while(self, duration: float | timedelta | None) -> None:
        """Sleep for ``duration`` seconds, or the idle interval when None."""
        if duration is None:
            seconds = self.idle_interval
        elif isinstance(duration, timedelta):
            seconds = duration.total_seconds()
        else:
            seconds = float(duration)
        await asyncio.sleep(seconds)
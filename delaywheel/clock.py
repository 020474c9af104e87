"""Wall-clock helpers, the runtime kind and the wheel's second hand."""

from __future__ import annotations

import threading
import time
from enum import Enum

__all__ = ["RuntimeKind", "SecondHand", "timestamp", "timestamp_micros"]


class RuntimeKind(Enum):
    """Where the timer's background work is driven from."""

    ASYNCIO = "asyncio"
    THREAD = "thread"

    @classmethod
    def default(cls) -> RuntimeKind:
        """The kind used when none is chosen."""
        return cls.ASYNCIO


class SecondHand:
    """Thread-safe pointer to the current slot of a timing wheel."""

    __slots__ = ("_slot_count", "_position", "_lock")

    def __init__(self, slot_count: int, position: int = 0) -> None:
        if slot_count <= 0:
            raise ValueError("slot_count must be positive")
        if not 0 <= position < slot_count:
            raise ValueError("position must lie within the wheel")
        self._slot_count = slot_count
        self._position = position
        self._lock = threading.Lock()

    @property
    def slot_count(self) -> int:
        return self._slot_count

    def current(self) -> int:
        """The slot the hand points at."""
        with self._lock:
            return self._position

    def advance(self) -> int:
        """Move the hand one slot forward, wrapping round; return the old slot."""
        with self._lock:
            previous = self._position
            self._position = (previous + 1) % self._slot_count
            return previous

    def __repr__(self) -> str:
        return f"SecondHand(slot_count={self._slot_count}, position={self.current()})"


def _nanoseconds_since_epoch() -> int:
    now = time.time_ns()
    if now < 0:
        raise RuntimeError("System time is before the UNIX epoch")
    return now


def timestamp() -> int:
    """Whole seconds since the UNIX epoch."""
    return _nanoseconds_since_epoch() // 1_000_000_000


def timestamp_micros() -> int:
    """Whole microseconds since the UNIX epoch."""
    return _nanoseconds_since_epoch() // 1_000
"""Running task instances and the chain through which users receive them."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta

from .errors import (
    CancelNotPossibleError,
    CancelTimeoutError,
    ExpiredError,
    InstanceEventGetError,
    InstanceSendError,
    InternalChannelError,
    MissingEventSenderError,
)
from .state import ChainState, InstanceState

__all__ = [
    "CancelTask",
    "Instance",
    "TaskInstance",
    "TaskInstancesChain",
    "TaskInstancesChainMaintainer",
    "task_instance_chain_pair",
]

logger = logging.getLogger(__name__)

EventSender = Callable[[object], object]


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


def _wake(waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]]) -> None:
    for loop, future in waiters:
        try:
            loop.call_soon_threadsafe(_resolve, future)
        except RuntimeError:
            # The waiting loop is already closed.
            pass


class _Signal:
    """A latch that both threads and coroutines can wait on."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def set(self) -> None:
        with self._lock:
            self._event.set()
            waiters, self._waiters = self._waiters, []
        _wake(waiters)

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    async def wait_async(self) -> None:
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._event.is_set():
                return
            future = loop.create_future()
            self._waiters.append((loop, future))
        await future


class _InstanceHeader:
    __slots__ = ("state", "signal")

    def __init__(self) -> None:
        self.state = InstanceState.RUNNING
        self.signal = _Signal()


@dataclass(frozen=True)
class CancelTask:
    """Event asking the timer to cancel one running instance."""

    task_id: int
    record_id: int


@dataclass
class Instance:
    """One running instance of a task; copies share the same state."""

    task_id: int = 0
    record_id: int = 0
    header: _InstanceHeader = field(
        default_factory=_InstanceHeader, repr=False, compare=False
    )

    @property
    def state(self) -> InstanceState:
        return self.header.state

    def notify_cancel_finish(self, state: int) -> None:
        """Record how the instance ended and wake everyone waiting on it."""
        self.header.state = InstanceState(state)
        self.header.signal.set()


@dataclass
class TaskInstance:
    """A running instance handed to the user, able to cancel itself."""

    instance: Instance
    timer_event_sender: EventSender

    @property
    def task_id(self) -> int:
        return self.instance.task_id

    @property
    def record_id(self) -> int:
        return self.instance.record_id

    @property
    def state(self) -> InstanceState:
        return self.instance.state

    def _cancel(self) -> None:
        if self.state != InstanceState.RUNNING:
            raise CancelNotPossibleError()
        try:
            self.timer_event_sender(CancelTask(self.task_id, self.record_id))
        except Exception as exc:
            raise InstanceSendError() from exc

    def cancel_with_wait(self) -> InstanceState:
        """Cancel the instance and block until the timer confirms it."""
        self._cancel()
        self.instance.header.signal.wait()
        return self.state

    def cancel_with_wait_timeout(self, timeout: float | timedelta) -> InstanceState:
        """Cancel the instance and block for at most ``timeout`` seconds."""
        seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
        self._cancel()
        if not self.instance.header.signal.wait(seconds):
            raise CancelTimeoutError()
        return self.state

    async def cancel_with_async_wait(self) -> InstanceState:
        """Cancel the instance and await the timer's confirmation."""
        self._cancel()
        await self.instance.header.signal.wait_async()
        return self.state


class _InstanceChannel:
    """Unbounded, closable queue of instances usable from threads and coroutines."""

    def __init__(self) -> None:
        self._items: deque[Instance] = deque()
        self._closed = False
        self._condition = threading.Condition()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def send(self, instance: Instance) -> None:
        with self._condition:
            if self._closed:
                raise InstanceSendError("The instance channel is closed.")
            self._items.append(instance)
            self._condition.notify()
            waiters, self._waiters = self._waiters, []
        _wake(waiters)

    def close(self) -> None:
        with self._condition:
            self._closed = True
            self._condition.notify_all()
            waiters, self._waiters = self._waiters, []
        _wake(waiters)

    def try_recv(self) -> Instance:
        with self._condition:
            if self._items:
                return self._items.popleft()
        raise InstanceEventGetError()

    def recv(self) -> Instance:
        with self._condition:
            while not self._items:
                if self._closed:
                    raise InternalChannelError()
                self._condition.wait()
            return self._items.popleft()

    async def recv_async(self) -> Instance:
        loop = asyncio.get_running_loop()
        while True:
            with self._condition:
                if self._items:
                    return self._items.popleft()
                if self._closed:
                    raise InternalChannelError()
                future = loop.create_future()
                self._waiters.append((loop, future))
            await future


class _ChainStateCell:
    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value = ChainState.LIVING


class TaskInstancesChain:
    """The user's end of a task's instances: takes each new running instance."""

    def __init__(
        self,
        channel: _InstanceChannel,
        state: _ChainStateCell,
        timer_event_sender: EventSender | None = None,
    ) -> None:
        self._channel = channel
        self._state = state
        self.timer_event_sender = timer_event_sender

    @property
    def state(self) -> ChainState:
        return self._state.value

    def _sender(self) -> EventSender:
        if self._state.value == ChainState.ABANDONED:
            raise ExpiredError()
        if self.timer_event_sender is None:
            raise MissingEventSenderError()
        return self.timer_event_sender

    def next(self) -> TaskInstance:
        """Take the next instance without blocking."""
        sender = self._sender()
        return TaskInstance(self._channel.try_recv(), sender)

    def next_with_wait(self) -> TaskInstance:
        """Block until the next instance is available."""
        sender = self._sender()
        return TaskInstance(self._channel.recv(), sender)

    async def next_with_async_wait(self) -> TaskInstance:
        """Await the next instance."""
        sender = self._sender()
        return TaskInstance(await self._channel.recv_async(), sender)

    def close(self) -> None:
        """Stop receiving instances."""
        self._state.value = ChainState.DROPPED
        self._channel.close()

    def __enter__(self) -> TaskInstancesChain:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class TaskInstancesChainMaintainer:
    """The timer's end of a task's instances: publishes each new running instance."""

    def __init__(self, channel: _InstanceChannel, state: _ChainStateCell) -> None:
        self._channel = channel
        self._state = state
        self.instances: list[Instance] = []

    @property
    def state(self) -> ChainState:
        return self._state.value

    def push_instance(self, instance: Instance) -> None:
        """Publish an instance to the chain and keep it on record."""
        try:
            self._channel.send(instance)
        except InstanceSendError as exc:
            logger.error("push_instance error: %s", exc)
        self.instances.append(instance)

    def abandon(self) -> None:
        """Stop maintaining the task's instances."""
        self._state.value = ChainState.ABANDONED
        self._channel.close()


def task_instance_chain_pair() -> tuple[TaskInstancesChain, TaskInstancesChainMaintainer]:
    """Create a connected chain and maintainer."""
    channel = _InstanceChannel()
    state = _ChainStateCell()
    return TaskInstancesChain(channel, state), TaskInstancesChainMaintainer(channel, state)
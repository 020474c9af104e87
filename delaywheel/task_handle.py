"""Handles of running task instances and the trace that keeps them for cancellation."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

__all__ = [
    "DelayTaskHandler",
    "NullTaskHandler",
    "AsyncioTaskHandler",
    "DelayTaskHandlerBox",
    "TaskTrace",
]

logger = logging.getLogger(__name__)


class DelayTaskHandler(ABC):
    """Something that can stop a running task instance."""

    @abstractmethod
    def quit(self) -> None:
        """Stop the running task instance."""


class NullTaskHandler(DelayTaskHandler):
    """Handler for work that has nothing to stop."""

    def quit(self) -> None:
        return None


class AsyncioTaskHandler(DelayTaskHandler):
    """Stops an asyncio task by cancelling it, from any thread."""

    def __init__(self, task: asyncio.Future) -> None:
        self.task = task

    def quit(self) -> None:
        loop = self.task.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self.task.cancel()
            return
        if loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self.task.cancel)
        except RuntimeError:
            # The loop closed in between; the task can no longer run.
            pass


@dataclass
class DelayTaskHandlerBox:
    """A handler together with the identity and time limits of its instance."""

    task_id: int
    record_id: int
    handler: DelayTaskHandler | None = None
    start_time: int = 0
    end_time: int | None = None

    def quit(self) -> None:
        """Stop the instance; later calls do nothing."""
        handler, self.handler = self.handler, None
        if handler is not None:
            handler.quit()


class TaskTrace:
    """Keeps the handlers of running instances, grouped by task id."""

    def __init__(self) -> None:
        self._handlers: dict[int, list[DelayTaskHandlerBox]] = {}

    def insert(self, task_id: int, handler_box: DelayTaskHandlerBox) -> None:
        """Track a new running instance of a task."""
        self._handlers.setdefault(task_id, []).append(handler_box)

    def clear(self) -> None:
        """Stop and forget every tracked instance."""
        handlers, self._handlers = self._handlers, {}
        for boxes in handlers.values():
            for box in boxes:
                try:
                    box.quit()
                except Exception as exc:
                    logger.error("`DelayTaskHandlerBox.quit`: %s", exc)

    def quit_one_task_handler(self, task_id: int, record_id: int) -> None:
        """Stop and forget one instance; raise LookupError if it is not tracked."""
        boxes = self._handlers.get(task_id)
        if boxes is None:
            raise LookupError(
                f"No task-handler-list found (task-id: {task_id})"
            )
        index = next(
            (i for i, box in enumerate(boxes) if box.record_id == record_id), None
        )
        if index is None:
            raise LookupError(
                f"No task-handle-index found (task-id: {task_id}, record-id: {record_id})"
            )
        box = boxes.pop(index)
        if not boxes:
            del self._handlers[task_id]
        box.quit()

    def records(self, task_id: int) -> list[int]:
        """Record ids of the tracked instances of a task, oldest first."""
        return [box.record_id for box in self._handlers.get(task_id, ())]

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._handlers

    def __len__(self) -> int:
        return sum(len(boxes) for boxes in self._handlers.values())
"""Exceptions raised by the timer, its tasks and their running instances."""

from __future__ import annotations

__all__ = [
    "DelayTimerError",
    "TaskError",
    "TaskSendError",
    "TaskEventGetError",
    "FrequencyAnalyzeError",
    "CronParseError",
    "InitTimeError",
    "TaskInstanceError",
    "InstanceSendError",
    "InstanceEventGetError",
    "CancelNotPossibleError",
    "CancelTimeoutError",
    "MissingEventSenderError",
    "InternalChannelError",
    "ExpiredError",
    "CommandChildError",
]


class DelayTimerError(Exception):
    """Base class of every error raised by this package."""

    default_message = "Delay timer error."

    def __init__(self, message: str | None = None) -> None:
        self.message = self.default_message if message is None else message
        super().__init__(self.message)


class TaskError(DelayTimerError):
    """An operation on a task failed."""

    default_message = "Task operation failed."


class TaskSendError(TaskError):
    """A task event could not be delivered to the timer."""

    default_message = "Task sending failure."


class TaskEventGetError(TaskError):
    """A task event could not be received."""

    default_message = "Task event get failed."


class FrequencyAnalyzeError(TaskError):
    """The frequency of a task could not be analysed."""

    default_message = "Cron expression analysis error."


class CronParseError(FrequencyAnalyzeError):
    """A cron expression is malformed."""

    default_message = "The cron expression was parsed incorrectly."


class InitTimeError(FrequencyAnalyzeError):
    """The time a schedule starts from is wrong."""

    default_message = "The initialization time is wrong."


class TaskInstanceError(DelayTimerError):
    """An operation on a running task instance failed."""

    default_message = "Task instance operation failed."


class InstanceSendError(TaskInstanceError):
    """An instance event could not be delivered to the timer."""

    default_message = "TaskInstance sending failure."


class InstanceEventGetError(TaskInstanceError):
    """No instance could be taken from the chain."""

    default_message = "TaskInstance event get failed."


class CancelNotPossibleError(TaskInstanceError):
    """The instance already completed or was cancelled."""

    default_message = "The task has been (completed or canceled) and cannot be cancelled."


class CancelTimeoutError(TaskInstanceError):
    """Waiting for a cancellation to be confirmed took too long."""

    default_message = "Waiting for cancellation timeout."


class MissingEventSenderError(TaskInstanceError):
    """The chain has no way to send events to the timer."""

    default_message = "Missing `timer_event_sender`."


class InternalChannelError(TaskInstanceError):
    """The internal instance channel was closed unexpectedly."""

    default_message = "Task instance channel exception."


class ExpiredError(TaskInstanceError):
    """Running instances of the task are no longer maintained."""

    default_message = "Running instance of the task is no longer maintained."


class CommandChildError(DelayTimerError):
    """The conditions for running a command are not met."""

    default_message = "Process execution conditions are not met."

    def __init__(self, condition: str) -> None:
        self.condition = condition
        super().__init__(f"Process execution conditions are not met for {condition}")
"""States of a running task instance and of an instance chain."""

from enum import IntEnum

__all__ = ["InstanceState", "ChainState"]


class InstanceState(IntEnum):
    """Lifecycle state of one running instance of a task."""

    RUNNING = 1 << 1
    COMPLETED = 1 << 2
    CANCELLED = 1 << 3
    TIMEOUT = 1 << 4

    @property
    def is_finished(self) -> bool:
        """True once the instance has stopped running for any reason."""
        return self is not InstanceState.RUNNING


class ChainState(IntEnum):
    """State of the link between a task and its instance chain."""

    LIVING = 1 << 1
    # The consumer side of the chain has been closed.
    DROPPED = 1 << 2
    # The maintaining side has gone: running instances are no longer tracked.
    ABANDONED = 1 << 3
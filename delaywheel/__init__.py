"""Time-wheel scheduling pieces: instance states, errors, clock, cancellation handles, instance chains and timeout recycling."""

__version__ = "0.1.0"

__all__ = ["clock", "errors", "state", "sweeper", "task_handle", "task_instance"]
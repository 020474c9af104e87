# delaywheel

Runtime pieces of a time-wheel task scheduler, for programs that run
periodic synchronous or asynchronous jobs and need to watch, cancel and
time out the instances those jobs start. It has no dependencies outside
the standard library.

## What is inside

- `delaywheel.state`: `InstanceState` (`RUNNING`, `COMPLETED`,
  `CANCELLED`, `TIMEOUT`, with an `is_finished` property) and
  `ChainState` (`LIVING`, `DROPPED`, `ABANDONED`).
- `delaywheel.errors`: the exception hierarchy under `DelayTimerError`.
  It holds `TaskError` (`TaskSendError`, `TaskEventGetError`,
  `FrequencyAnalyzeError` with `CronParseError` and `InitTimeError`),
  `TaskInstanceError` (`InstanceSendError`, `InstanceEventGetError`,
  `CancelNotPossibleError`, `CancelTimeoutError`,
  `MissingEventSenderError`, `InternalChannelError`, `ExpiredError`) and
  `CommandChildError`.
- `delaywheel.clock`: `timestamp()` (seconds since the epoch),
  `timestamp_micros()`, `RuntimeKind` (`ASYNCIO` by default, or `THREAD`),
  and `SecondHand(slot_count)`. `SecondHand` is a thread-safe slot pointer
  with `current()` and `advance()`. `advance()` wraps round and returns the
  previous slot.
- `delaywheel.task_handle`: the `DelayTaskHandler` interface and its
  ready-made kinds `NullTaskHandler` and `AsyncioTaskHandler`.
  `AsyncioTaskHandler` cancels an asyncio task from any thread.
  `DelayTaskHandlerBox` carries one running instance: task id, record id,
  handler, start and end time. `TaskTrace` keeps the boxes by task id.
  `quit_one_task_handler(task_id, record_id)` stops a single run, and
  raises `LookupError` when that run is not tracked. `clear()` stops every
  run.
- `delaywheel.task_instance`: `task_instance_chain_pair()` gives a
  `TaskInstancesChain` for the user and a `TaskInstancesChainMaintainer`
  for the scheduler. Each run shows up as a `TaskInstance`. It can be
  cancelled with `cancel_with_wait()`, `cancel_with_wait_timeout(timeout)`
  or `await cancel_with_async_wait()`. Cancelling passes a `CancelTask`
  event to the chain's `timer_event_sender` callable.
- `delaywheel.sweeper`: `RecyclingBins` takes `RecycleUnit`s (deadline,
  task id, record id) from an async iterable. It passes a `TimeoutTask`
  event to its sender for each unit whose deadline has passed. The sender
  may be a plain or an async callable. Run `add_recycle_unit()` and
  `recycle()` as concurrent coroutines.

## Install

```
pip install delaywheel
```

## Example

```python
import queue

from delaywheel.state import InstanceState
from delaywheel.task_instance import CancelTask, Instance, task_instance_chain_pair

events = queue.Queue()
chain, maintainer = task_instance_chain_pair()
chain.timer_event_sender = events.put

# The scheduler reports a new running instance.
instance = Instance(task_id=1, record_id=42)
maintainer.push_instance(instance)

running = chain.next()
print(running.state)  # InstanceState.RUNNING

# The scheduler confirms the cancellation it receives.
event = None

def confirm():
    global event
    event = events.get()
    instance.notify_cancel_finish(InstanceState.CANCELLED)

import threading
threading.Thread(target=confirm).start()
print(running.cancel_with_wait())  # InstanceState.CANCELLED
print(event == CancelTask(1, 42))  # True
```

When the chain has been abandoned with `maintainer.abandon()`, taking an
instance raises `ExpiredError`. When no sender is set, it raises
`MissingEventSenderError`. Cancelling an instance that has already
finished raises `CancelNotPossibleError`.

## What this package does not do

The package gives a scheduler the pieces above, but it is not a
scheduler. It has no timer object that runs jobs, no task builder and no
cron-expression parser. It never places work in the slots that a
`SecondHand` points at. Your own event loop must do that work:

- receive `CancelTask` and `TimeoutTask` events;
- call `TaskTrace.quit_one_task_handler()`;
- report the outcome with `Instance.notify_cancel_finish()`.

## Tests

```
pip install "delaywheel[test]"
pytest
```
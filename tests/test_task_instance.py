import asyncio
import threading
from datetime import timedelta

import pytest

from delaywheel.errors import (
    CancelNotPossibleError,
    CancelTimeoutError,
    ExpiredError,
    InstanceEventGetError,
    InstanceSendError,
    InternalChannelError,
    MissingEventSenderError,
)
from delaywheel.state import ChainState, InstanceState
from delaywheel.task_instance import (
    CancelTask,
    Instance,
    task_instance_chain_pair,
)


def _connected_pair():
    sent = []
    chain, maintainer = task_instance_chain_pair()
    chain.timer_event_sender = sent.append
    return chain, maintainer, sent


def test_next_without_sender_raises():
    chain, maintainer = task_instance_chain_pair()
    maintainer.push_instance(Instance(task_id=1, record_id=2))
    with pytest.raises(MissingEventSenderError):
        chain.next()


def test_next_on_empty_chain_raises():
    chain, _, _ = _connected_pair()
    with pytest.raises(InstanceEventGetError):
        chain.next()


def test_next_returns_instances_in_order():
    chain, maintainer, _ = _connected_pair()
    maintainer.push_instance(Instance(task_id=1, record_id=10))
    maintainer.push_instance(Instance(task_id=1, record_id=11))
    first = chain.next()
    second = chain.next()
    assert [first.record_id, second.record_id] == [10, 11]
    assert first.state is InstanceState.RUNNING
    assert [i.record_id for i in maintainer.instances] == [10, 11]


def test_instance_state_is_shared():
    chain, maintainer, _ = _connected_pair()
    maintainer.push_instance(Instance(task_id=2, record_id=3))
    task_instance = chain.next()
    maintainer.instances[0].notify_cancel_finish(InstanceState.COMPLETED)
    assert task_instance.state is InstanceState.COMPLETED


def test_abandoned_chain_is_expired():
    chain, maintainer, _ = _connected_pair()
    maintainer.push_instance(Instance(task_id=1, record_id=1))
    maintainer.abandon()
    assert chain.state is ChainState.ABANDONED
    with pytest.raises(ExpiredError):
        chain.next()


def test_closed_chain_blocking_wait_raises():
    chain, _, _ = _connected_pair()
    chain.close()
    assert chain.state is ChainState.DROPPED
    with pytest.raises(InternalChannelError):
        chain.next_with_wait()


def test_push_after_close_is_still_recorded():
    chain, maintainer, _ = _connected_pair()
    chain.close()
    maintainer.push_instance(Instance(task_id=1, record_id=5))
    assert [i.record_id for i in maintainer.instances] == [5]


def test_context_manager_closes_chain():
    chain, maintainer, _ = _connected_pair()
    with chain:
        maintainer.push_instance(Instance(task_id=1, record_id=1))
        assert chain.next().record_id == 1
    assert maintainer.state is ChainState.DROPPED


def test_next_with_wait_blocks_until_pushed():
    chain, maintainer, _ = _connected_pair()
    timer = threading.Timer(0.05, maintainer.push_instance, args=(Instance(task_id=3, record_id=7),))
    timer.start()
    task_instance = chain.next_with_wait()
    timer.join()
    assert (task_instance.task_id, task_instance.record_id) == (3, 7)


def test_cancel_sends_event_and_waits():
    chain, maintainer, sent = _connected_pair()
    maintainer.push_instance(Instance(task_id=5, record_id=42))
    task_instance = chain.next()
    timer = threading.Timer(
        0.05, task_instance.instance.notify_cancel_finish, args=(InstanceState.CANCELLED,)
    )
    timer.start()
    result = task_instance.cancel_with_wait()
    timer.join()
    assert result is InstanceState.CANCELLED
    assert sent == [CancelTask(5, 42)]


def test_cancel_finished_instance_raises():
    chain, maintainer, sent = _connected_pair()
    maintainer.push_instance(Instance(task_id=1, record_id=1))
    task_instance = chain.next()
    task_instance.instance.notify_cancel_finish(InstanceState.COMPLETED)
    with pytest.raises(CancelNotPossibleError):
        task_instance.cancel_with_wait()
    assert sent == []


def test_cancel_timeout():
    chain, maintainer, sent = _connected_pair()
    maintainer.push_instance(Instance(task_id=8, record_id=9))
    task_instance = chain.next()
    with pytest.raises(CancelTimeoutError):
        task_instance.cancel_with_wait_timeout(0.05)
    assert sent == [CancelTask(8, 9)]
    assert task_instance.state is InstanceState.RUNNING


def test_cancel_with_timedelta_returns_state():
    chain, maintainer, _ = _connected_pair()
    maintainer.push_instance(Instance(task_id=1, record_id=2))
    task_instance = chain.next()
    timer = threading.Timer(
        0.05, task_instance.instance.notify_cancel_finish, args=(InstanceState.TIMEOUT,)
    )
    timer.start()
    result = task_instance.cancel_with_wait_timeout(timedelta(seconds=5))
    timer.join()
    assert result is InstanceState.TIMEOUT


def test_failing_sender_raises_send_error():
    chain, maintainer = task_instance_chain_pair()

    def refuse(event):
        raise RuntimeError("closed")

    chain.timer_event_sender = refuse
    maintainer.push_instance(Instance(task_id=1, record_id=1))
    task_instance = chain.next()
    with pytest.raises(InstanceSendError) as info:
        task_instance.cancel_with_wait_timeout(1)
    assert isinstance(info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_next_with_async_wait():
    chain, maintainer, _ = _connected_pair()
    loop = asyncio.get_running_loop()
    loop.call_later(0.02, maintainer.push_instance, Instance(task_id=2, record_id=9))
    task_instance = await asyncio.wait_for(chain.next_with_async_wait(), 2)
    assert (task_instance.task_id, task_instance.record_id) == (2, 9)


@pytest.mark.asyncio
async def test_next_with_async_wait_from_thread_push():
    chain, maintainer, _ = _connected_pair()
    timer = threading.Timer(0.05, maintainer.push_instance, args=(Instance(task_id=4, record_id=6),))
    timer.start()
    task_instance = await asyncio.wait_for(chain.next_with_async_wait(), 2)
    timer.join()
    assert task_instance.record_id == 6


@pytest.mark.asyncio
async def test_next_with_async_wait_on_closed_chain_raises():
    chain, _, _ = _connected_pair()
    chain.close()
    with pytest.raises(InternalChannelError):
        await chain.next_with_async_wait()


@pytest.mark.asyncio
async def test_cancel_with_async_wait():
    chain, maintainer, sent = _connected_pair()
    maintainer.push_instance(Instance(task_id=1, record_id=11))
    task_instance = chain.next()
    timer = threading.Timer(
        0.05, task_instance.instance.notify_cancel_finish, args=(InstanceState.CANCELLED,)
    )
    timer.start()
    result = await asyncio.wait_for(task_instance.cancel_with_async_wait(), 2)
    timer.join()
    assert result is InstanceState.CANCELLED
    assert sent == [CancelTask(1, 11)]
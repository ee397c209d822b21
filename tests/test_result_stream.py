"""Tests for the replay-latest result stream."""

import asyncio

import pytest

from alertq.core.models import AggregateResult
from alertq.runner.stream import ResultStream, SubscriptionClosed


def _aggregate(generation):
    return AggregateResult({}, generation=generation)


@pytest.mark.asyncio
async def test_subscriber_receives_every_publish_in_order():
    stream = ResultStream()
    sub = stream.subscribe()

    stream.publish(_aggregate(1))
    stream.publish(_aggregate(2))

    assert (await sub.get()).generation == 1
    assert (await sub.get()).generation == 2
    assert sub.pending == 0


@pytest.mark.asyncio
async def test_late_subscriber_gets_only_the_latest():
    stream = ResultStream()
    stream.publish(_aggregate(1))
    stream.publish(_aggregate(2))

    sub = stream.subscribe()
    assert (await sub.get()).generation == 2
    assert sub.get_nowait() is None


@pytest.mark.asyncio
async def test_subscriber_before_any_publish_waits():
    stream = ResultStream()
    sub = stream.subscribe()

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(sub.get(), 0.01)

    stream.publish(_aggregate(5))
    assert (await sub.get()).generation == 5


@pytest.mark.asyncio
async def test_closed_subscription_stops_receiving():
    stream = ResultStream()
    sub = stream.subscribe()
    other = stream.subscribe()
    sub.close()

    stream.publish(_aggregate(1))

    assert stream.subscriber_count == 1
    assert [item async for item in sub] == []
    assert (await other.get()).generation == 1


@pytest.mark.asyncio
async def test_closing_stream_ends_iteration_for_all():
    stream = ResultStream()
    sub = stream.subscribe()
    stream.publish(_aggregate(1))
    stream.close()

    assert [item.generation async for item in sub] == [1]
    with pytest.raises(SubscriptionClosed):
        await sub.get()
    with pytest.raises(RuntimeError):
        stream.publish(_aggregate(2))

"""Replay-latest broadcast stream of aggregate results."""

from __future__ import annotations

import asyncio
from typing import List, Optional

from alertq.core.errors import AlertQueryError
from alertq.core.models import AggregateResult

_CLOSED = object()


class SubscriptionClosed(AlertQueryError):
    """Raised by ``ResultSubscription.get`` once the stream has ended."""


class ResultSubscription:
    """One observer's view of a ResultStream.

    Iterate with ``async for`` or call ``get()``; every published aggregate
    is delivered in order.
    """

    def __init__(self, stream: "ResultStream") -> None:
        self._stream = stream
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self.closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _push(self, value: AggregateResult) -> None:
        if not self.closed:
            self._queue.put_nowait(value)

    def _end(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    async def get(self) -> AggregateResult:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel so later readers also see the end.
            self._queue.put_nowait(_CLOSED)
            raise SubscriptionClosed("Result stream is closed")
        return item  # type: ignore[return-value]

    def get_nowait(self) -> Optional[AggregateResult]:
        """Next queued aggregate, or None when nothing is queued."""
        if self._queue.empty():
            return None
        item = self._queue.get_nowait()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self._stream._unsubscribe(self)
        self._end()

    def __aiter__(self) -> "ResultSubscription":
        return self

    async def __anext__(self) -> AggregateResult:
        try:
            return await self.get()
        except SubscriptionClosed:
            raise StopAsyncIteration from None


class ResultStream:
    """Broadcasts aggregates; new subscribers first receive the latest one."""

    def __init__(self) -> None:
        self._latest: Optional[AggregateResult] = None
        self._subscribers: List[ResultSubscription] = []
        self._closed = False

    @property
    def latest(self) -> Optional[AggregateResult]:
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, value: AggregateResult) -> None:
        if self._closed:
            raise RuntimeError("Cannot publish to a closed result stream")
        self._latest = value
        for subscription in list(self._subscribers):
            subscription._push(value)

    def subscribe(self) -> ResultSubscription:
        subscription = ResultSubscription(self)
        if self._closed:
            subscription._end()
            return subscription
        if self._latest is not None:
            subscription._push(self._latest)
        self._subscribers.append(subscription)
        return subscription

    def close(self) -> None:
        self._closed = True
        for subscription in self._subscribers:
            subscription._end()
        self._subscribers.clear()

    def _unsubscribe(self, subscription: ResultSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

"""Event streams that fan change events out to subscribers.

A subscriber either registers a handler (sync or async callable) or
consumes events by async iteration over its :class:`Subscription`::

    sub = poller.inserts.subscribe()
    async for event in sub:
        ...

Iteration ends when the stream is closed.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from restbase.utils.telemetry import get_logger

EventT = TypeVar("EventT")

EventHandler = Callable[[Any], None] | Callable[[Any], Awaitable[None]]

_CLOSED = object()


class Subscription(Generic[EventT]):
    """One subscriber's attachment to an event stream."""

    def __init__(self, stream_name: str, handler: EventHandler | None = None):
        """Initialize a subscription.

        Args:
            stream_name: Name of the stream, for logging
            handler: Optional callback; without one, events are buffered for
                async iteration
        """
        self.stream_name = stream_name
        self.handler = handler
        self.active = True
        self._queue: asyncio.Queue[Any] | None = (
            None if handler is not None else asyncio.Queue()
        )

    async def deliver(self, event: EventT) -> None:
        if not self.active:
            return
        if self.handler is not None:
            result = self.handler(event)
            if inspect.isawaitable(result):
                await result
        elif self._queue is not None:
            self._queue.put_nowait(event)

    async def get(self) -> EventT:
        """Wait for the next buffered event.

        Raises:
            RuntimeError: If the subscription uses a handler
            StopAsyncIteration: If the stream was closed
        """
        if self._queue is None:
            raise RuntimeError("Handler subscriptions do not buffer events")
        event = await self._queue.get()
        if event is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return event

    def pending(self) -> int:
        """Number of buffered events not yet consumed."""
        if self._queue is None:
            return 0
        # A closed subscription holds exactly one trailing sentinel
        return max(0, self._queue.qsize() - (0 if self.active else 1))

    def _close(self) -> None:
        self.active = False
        if self._queue is not None:
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription[EventT]":
        return self

    async def __anext__(self) -> EventT:
        return await self.get()


class EventStream(Generic[EventT]):
    """Ordered fan-out of events to the current subscribers."""

    def __init__(self, name: str):
        self.name = name
        self._subscriptions: list[Subscription[EventT]] = []
        self._closed = False
        self._logger = get_logger("restbase.realtime.stream", stream=name)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: EventHandler | None = None) -> Subscription[EventT]:
        """Attach a subscriber.

        Raises:
            RuntimeError: If the stream is closed
        """
        if self._closed:
            raise RuntimeError(f"Cannot subscribe to closed stream {self.name}")

        subscription: Subscription[EventT] = Subscription(self.name, handler)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[EventT]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            subscription._close()

    async def publish(self, event: EventT) -> None:
        """Deliver ``event`` to every subscriber in subscription order.

        A failing handler is logged and does not affect other subscribers.

        Raises:
            RuntimeError: If the stream is closed
        """
        if self._closed:
            raise RuntimeError(f"Cannot publish to closed stream {self.name}")

        for subscription in list(self._subscriptions):
            try:
                await subscription.deliver(event)
            except Exception as e:
                self._logger.error(
                    "Subscriber handler failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def close(self) -> None:
        """Close the stream and end every subscriber's iteration."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._close()
        self._subscriptions.clear()

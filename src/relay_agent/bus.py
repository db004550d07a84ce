"""In-process event bus.

Two channel disciplines, chosen for their consumer cardinality:

- **Inbound work queue** -- one logical consumer (the dispatcher), bounded
  capacity. A full queue blocks the publisher until space frees, so inbound
  work is never lost.
- **Broadcasts** (system events, outbound messages) -- any number of
  subscribers, each with its own bounded buffer. Publishing never blocks;
  when a subscriber's buffer is full the event is dropped for that
  subscriber only, so observability never throttles the agent loop.

The bus is constructed explicitly where the system is wired together and
passed by reference to every component that needs it.

Usage::

    bus = EventBus()
    async with bus.subscribe_system() as events:
        async for event in events:
            print(event.description)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from relay_agent.envelopes import InboundMessage, OutboundMessage
from relay_agent.events import SystemEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Wakes a consumer blocked on an empty subscription after close().
_CLOSED = object()


class Subscription(Generic[T]):
    """One subscriber's view of a broadcast channel.

    Receives every item published after it was created, in publish order.
    Supports ``async for`` and ``async with`` (which closes on exit).
    """

    def __init__(self, broadcast: Broadcast[T], buffer_size: int) -> None:
        self._broadcast = broadcast
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=buffer_size)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, item: T) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Subscriber buffer full; dropped event (%d dropped so far)", self.dropped
            )

    async def recv(self) -> T:
        """Wait for the next item.

        Raises:
            StopAsyncIteration: Once closed and drained.
        """
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def recv_nowait(self) -> T | None:
        """Return the next buffered item, or None when nothing is buffered."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item  # type: ignore[return-value]

    def close(self) -> None:
        """Stop receiving. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self._broadcast._unsubscribe(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Not blocked: the consumer sees the closed flag once drained.
            pass

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        return await self.recv()

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, *args: object) -> None:
        self.close()


class Broadcast(Generic[T]):
    """Multi-consumer, non-blocking fan-out channel."""

    def __init__(self, buffer_size: int) -> None:
        self._buffer_size = buffer_size
        self._subscribers: list[Subscription[T]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription[T]:
        subscription = Subscription(self, self._buffer_size)
        self._subscribers.append(subscription)
        return subscription

    def publish(self, item: T) -> int:
        """Offer *item* to every subscriber. Returns the subscriber count."""
        for subscription in list(self._subscribers):
            subscription._offer(item)
        return len(self._subscribers)

    def _unsubscribe(self, subscription: Subscription[T]) -> None:
        self._subscribers = [s for s in self._subscribers if s is not subscription]


class EventBus:
    """Central publish/subscribe hub shared by the agent and its observers."""

    def __init__(self, buffer_size: int = 256) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
        self._inbound: asyncio.Queue[InboundMessage] = asyncio.Queue(maxsize=buffer_size)
        self._outbound: Broadcast[OutboundMessage] = Broadcast(buffer_size)
        self._system: Broadcast[SystemEvent] = Broadcast(buffer_size)

    # ------------------------------------------------------------------ #
    # Inbound work queue
    # ------------------------------------------------------------------ #

    async def publish_inbound(self, message: InboundMessage) -> None:
        """Enqueue an inbound message, waiting while the queue is full."""
        await self._inbound.put(message)

    async def recv_inbound(self) -> InboundMessage:
        """Wait for the next inbound message (dispatcher side)."""
        message = await self._inbound.get()
        self._inbound.task_done()
        return message

    def inbound_sender(self) -> Callable[[InboundMessage], Awaitable[None]]:
        """Publisher handle for channel adapters."""
        return self.publish_inbound

    @property
    def inbound_pending(self) -> int:
        return self._inbound.qsize()

    # ------------------------------------------------------------------ #
    # Broadcasts
    # ------------------------------------------------------------------ #

    def publish_outbound(self, message: OutboundMessage) -> None:
        """Broadcast a reply to every channel subscriber."""
        self._outbound.publish(message)

    def subscribe_outbound(self) -> Subscription[OutboundMessage]:
        return self._outbound.subscribe()

    def publish_system(self, event: SystemEvent) -> None:
        """Broadcast a progress event. Never blocks."""
        self._system.publish(event)

    def subscribe_system(self) -> Subscription[SystemEvent]:
        return self._system.subscribe()

    @property
    def system_subscriber_count(self) -> int:
        return self._system.subscriber_count

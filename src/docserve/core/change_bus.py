"""
Broadcast of change messages to every connected client.

One producer, many subscribers. Each subscriber owns a small buffer; a
subscriber that falls behind loses its oldest buffered messages instead of
slowing the producer down. That is safe because every message is
idempotent from the client's side and a later Reload subsumes anything
that was missed.
"""

import asyncio
import logging

from docserve.models.messages import ServerMessage

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """A single consumer's view of the change bus."""

    def __init__(self, bus: "ChangeBus", capacity: int):
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self.missed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _offer(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            if item is not _CLOSED:
                self.missed += 1
        self._queue.put_nowait(item)

    async def receive(self) -> ServerMessage | None:
        """
        Wait for the next message.

        Returns:
            The next message, or None once the subscription is closed
        """
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        """Detach from the bus and wake any pending receive()."""
        if self._closed:
            return
        self._closed = True
        self._bus._unsubscribe(self)
        self._offer(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ServerMessage:
        message = await self.receive()
        if message is None:
            raise StopAsyncIteration
        return message

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ChangeBus:
    """
    Fan-out of change messages in emission order.

    Must be used from the event loop thread.
    """

    def __init__(self, capacity: int = 16):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._subscribers: list[Subscription] = []
        self.published_count = 0

    def subscribe(self) -> Subscription:
        """Register a new consumer; it only sees messages published after this call."""
        subscription = Subscription(self, self.capacity)
        self._subscribers.append(subscription)
        logger.debug("Subscriber added (%d active)", len(self._subscribers))
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            logger.debug("Subscriber removed (%d active)", len(self._subscribers))

    def publish(self, message: ServerMessage) -> int:
        """
        Deliver a message to all current subscribers without blocking.

        Returns:
            Number of subscribers the message was handed to
        """
        self.published_count += 1
        for subscription in list(self._subscribers):
            before = subscription.missed
            subscription._offer(message)
            if subscription.missed != before:
                logger.warning("Subscriber lagging, dropped oldest buffered message")
        logger.debug("Published %s to %d subscribers", message.type, len(self._subscribers))
        return len(self._subscribers)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

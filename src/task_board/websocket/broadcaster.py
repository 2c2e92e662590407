"""Publish/subscribe fan-out for live board views."""

import asyncio
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


class Subscription:
    """Handle for one live subscriber.

    Messages are queued already encoded; the transport drains ``queue`` in
    order, so a subscriber sees events in publish order.
    """

    def __init__(self, broadcaster: "Broadcaster") -> None:
        self._broadcaster = broadcaster
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self.closed = False

    async def get(self) -> str:
        """Wait for the next encoded message."""
        return await self.queue.get()

    def close(self) -> None:
        """Stop receiving messages. Safe to call more than once."""
        if not self.closed:
            self.closed = True
            self._broadcaster.unsubscribe(self)


class Broadcaster:
    """Fans ``{event, data}`` messages out to every open subscription."""

    def __init__(self) -> None:
        """Initialize broadcaster with no subscribers."""
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        """Register a new subscriber."""
        subscription = Subscription(self)
        self._subscriptions.append(subscription)
        logger.info(f"[Broadcaster] Subscriber added (total: {len(self._subscriptions)})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            subscription.closed = True
            logger.info(f"[Broadcaster] Subscriber removed (total: {len(self._subscriptions)})")

    def publish(self, event: str, data: Any) -> None:
        """Queue an event for every current subscriber.

        Fire-and-forget: nothing is kept for subscribers that join later.
        Must be called on the event loop thread.
        """
        if not self._subscriptions:
            logger.debug(f"[Broadcaster] No subscribers for {event}")
            return

        message = encode_message(event, data)
        logger.debug(f"[Broadcaster] Publishing {event} to {len(self._subscriptions)} subscribers")
        for subscription in list(self._subscriptions):
            subscription.queue.put_nowait(message)


def encode_message(event: str, data: Any) -> str:
    """Encode the wire format ``{"event": ..., "data": ...}``."""
    return json.dumps({"event": event, "data": data})

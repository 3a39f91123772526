"""
One-way fan-out channel for stream events.

Publishing delivers an event to every subscription that exists at that
moment. There is no acknowledgment, no replay for late subscribers and no
per-subscriber filtering.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional


logger = logging.getLogger(__name__)

_subscription_ids = itertools.count(1)

DEFAULT_QUEUE_SIZE = 1000


@dataclass
class Subscription:
    """
    A single listener attached to a broadcast channel.

    Attributes:
        subscription_id: Unique identifier (used in logs)
        label: Free-form description of the listener (e.g. client address)
        queue: Bounded queue of ``{"event", "data"}`` messages
        active: False once unsubscribed
        dropped: Messages discarded because the queue was full
    """
    subscription_id: int = field(default_factory=lambda: next(_subscription_ids))
    label: str = ""
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=DEFAULT_QUEUE_SIZE))
    active: bool = True
    dropped: int = 0

    def offer(self, message: Dict[str, Any]) -> bool:
        """
        Queue a message without waiting.

        Returns:
            False if the queue was full and the message was dropped
        """
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            if self.dropped == 0:
                logger.warning(f"Queue full for #{self.subscription_id} {self.label}, dropping events".rstrip())
            self.dropped += 1
            return False

    async def receive(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Wait for the next message on this subscription."""
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def drain(self) -> List[Dict[str, Any]]:
        """Return every message currently queued without waiting."""
        messages = []
        while True:
            try:
                messages.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                return messages


class BroadcastChannel:
    """Fan-out publisher shared by every stream and every listener."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscriptions: Dict[int, Subscription] = {}

    def subscribe(self, label: str = "") -> Subscription:
        subscription = Subscription(label=label, queue=asyncio.Queue(maxsize=self.queue_size))
        self._subscriptions[subscription.subscription_id] = subscription
        logger.debug(f"Subscribed #{subscription.subscription_id} {label}".rstrip())
        return subscription

    def unsubscribe(self, subscription: Subscription):
        """Detach a listener. Safe to call more than once."""
        subscription.active = False
        if self._subscriptions.pop(subscription.subscription_id, None) is not None:
            logger.debug(f"Unsubscribed #{subscription.subscription_id} {subscription.label}".rstrip())

    def publish(self, event: str, data: Any) -> int:
        """
        Deliver an event to all current subscribers.

        Never blocks and never yields to the event loop. A subscriber whose
        queue is full misses the event.

        Returns:
            Number of subscribers the event was queued for
        """
        message = {"event": event, "data": data}
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if subscription.offer(message):
                delivered += 1
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

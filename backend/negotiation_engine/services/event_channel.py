"""
Negotiation event channel.

WHAT: Broadcast lifecycle events to any number of subscribers
WHY: Observers must never stall the round loop
HOW: One asyncio.Queue per subscriber; publish never awaits

Delivery is at-most-once. A full subscriber queue drops the event for
that subscriber only, and the drop is counted on the subscription.
"""

import asyncio
from typing import AsyncIterator, List, Optional

from ..models.negotiation import NegotiationEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EventSubscription:
    """A subscriber's view of the channel."""

    def __init__(self, channel: "EventChannel", maxsize: int = 0, session_id: Optional[str] = None):
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.session_id = session_id
        self.dropped = 0
        self.closed = False

    def wants(self, event: NegotiationEvent) -> bool:
        return self.session_id is None or event.session_id == self.session_id

    def _offer(self, event: Optional[NegotiationEvent]) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> Optional[NegotiationEvent]:
        """Wait for the next event; None once the channel is closed and drained."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def get_nowait(self) -> Optional[NegotiationEvent]:
        """
        Next queued event without waiting.

        Raises:
            asyncio.QueueEmpty: If nothing is queued
        """
        return self._queue.get_nowait()

    def drain(self) -> List[NegotiationEvent]:
        """Pop every queued event, in delivery order."""
        events = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def pending(self) -> int:
        return self._queue.qsize()

    def unsubscribe(self):
        self._channel.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[NegotiationEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[NegotiationEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class EventChannel:
    """
    Broadcast channel for NegotiationEvent.

    WHAT: Fan events out to independent subscriber queues
    WHY: Decouple the orchestrator from observers
    HOW: publish() puts to every matching queue without awaiting
    """

    def __init__(self, default_maxsize: int = 0):
        """
        Initialize channel.

        Args:
            default_maxsize: Queue bound for new subscriptions (0 = unbounded)
        """
        self.default_maxsize = default_maxsize
        self._subscriptions: List[EventSubscription] = []
        self._closed = False
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, maxsize: Optional[int] = None, session_id: Optional[str] = None) -> EventSubscription:
        """
        Register a subscriber.

        Args:
            maxsize: Queue bound for this subscriber; defaults to the channel's
            session_id: Only receive events for this session when given

        Returns:
            EventSubscription to read events from
        """
        if self._closed:
            raise RuntimeError("Event channel is closed")

        subscription = EventSubscription(
            self,
            maxsize=self.default_maxsize if maxsize is None else maxsize,
            session_id=session_id,
        )
        self._subscriptions.append(subscription)
        logger.debug(f"Event subscriber added (total: {len(self._subscriptions)})")
        return subscription

    def unsubscribe(self, subscription: EventSubscription):
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(f"Event subscriber removed (total: {len(self._subscriptions)})")

    def publish(self, event: NegotiationEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        Returns:
            Number of subscribers that received it
        """
        if self._closed:
            logger.debug(f"Dropping {event.type} for session {event.session_id}: channel closed")
            return 0

        self.published += 1
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.wants(event):
                continue
            if subscription._offer(event):
                delivered += 1
            else:
                logger.warning(
                    f"Subscriber queue full, dropped {event.type} for session {event.session_id} "
                    f"(dropped so far: {subscription.dropped})"
                )
        return delivered

    def close(self):
        """Stop accepting events and wake waiting subscribers."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription.closed = True
            # Sentinel wakes a blocked get(); a full queue is already awake
            try:
                subscription._queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
        logger.debug("Event channel closed")

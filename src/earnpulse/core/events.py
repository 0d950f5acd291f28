"""In-process event bus for fanning live polling events out to subscribers.

Every subscriber owns a bounded asyncio queue. Publishing never awaits: events
are pushed with ``put_nowait`` and a full queue sheds its oldest entry, so a
slow stream connection cannot stall fetch cycles for other subjects.

The bus is meant to be used from a single event loop; subscribe, unsubscribe
and publish are plain synchronous calls and therefore never interleave.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

import orjson

from earnpulse.core.constants import DEFAULT_SUBSCRIBER_QUEUE_SIZE
from earnpulse.core.logging import get_logger

logger = get_logger(__name__)


class EventType(StrEnum):
    """Event types published by the live polling engine.

    Values double as SSE frame names.
    """

    UPDATE = "update"
    CHANGE = "change"
    ERROR = "error"
    POLLING_STARTED = "polling_started"
    POLLING_STOPPED = "polling_stopped"
    MANUAL_REFRESH = "manual_refresh"


@dataclass(frozen=True)
class Event:
    """An event in the system."""

    event_type: EventType
    payload: dict[str, Any]
    timestamp: datetime
    subject: str | None = None
    sequence: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert event to a JSON-ready dictionary."""
        return {
            "event_type": self.event_type.value,
            "subject": self.subject,
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: bytes | str) -> Event:
        """Rebuild an event from its JSON form (e.g. read back from Redis)."""
        raw = orjson.loads(data)
        return cls(
            event_type=EventType(raw["event_type"]),
            payload=raw["payload"],
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            subject=raw.get("subject"),
            sequence=raw.get("sequence", 0),
        )


@dataclass(eq=False)
class Subscription:
    """An active subscription to the event bus.

    The subscription object is the unsubscribe token.
    """

    queue: asyncio.Queue[Event]
    subscription_id: str = field(default_factory=lambda: uuid4().hex)
    dropped: int = 0
    closed: bool = False

    async def get(self) -> Event:
        """Wait for the next event."""
        return await self.queue.get()

    def get_nowait(self) -> Event:
        return self.queue.get_nowait()

    @property
    def pending(self) -> int:
        return self.queue.qsize()

    async def __aiter__(self) -> AsyncIterator[Event]:
        while not self.closed:
            yield await self.queue.get()


class EventBus:
    """Typed publish-subscribe channel with explicit subscription tokens."""

    def __init__(self, queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, Subscription] = {}
        self._sequence = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Register a new subscriber and return its token."""
        subscription = Subscription(queue=asyncio.Queue(maxsize=self._queue_size))
        self._subscribers[subscription.subscription_id] = subscription
        logger.debug(
            "Subscriber added",
            subscription_id=subscription.subscription_id,
            subscribers=self.subscriber_count,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscriber. Returns False if it was already gone."""
        subscription.closed = True
        removed = self._subscribers.pop(subscription.subscription_id, None) is not None
        if removed:
            logger.debug(
                "Subscriber removed",
                subscription_id=subscription.subscription_id,
                subscribers=self.subscriber_count,
            )
        return removed

    def publish(
        self,
        event_type: EventType,
        payload: dict[str, Any],
        subject: str | None = None,
    ) -> Event:
        """Publish an event to every current subscriber."""
        event = Event(
            event_type=event_type,
            payload=payload,
            timestamp=datetime.now(UTC),
            subject=subject,
            sequence=next(self._sequence),
        )
        for subscription in list(self._subscribers.values()):
            self._deliver(subscription, event)

        logger.debug(
            "Published event",
            event_type=event_type.value,
            subject=subject,
            sequence=event.sequence,
            subscribers=self.subscriber_count,
        )
        return event

    def _deliver(self, subscription: Subscription, event: Event) -> None:
        try:
            subscription.queue.put_nowait(event)
            return
        except asyncio.QueueFull:
            pass

        # Drop the oldest event to make room; the newest state matters most
        try:
            subscription.queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        subscription.dropped += 1
        subscription.queue.put_nowait(event)
        logger.warning(
            "Subscriber queue full, dropped oldest event",
            subscription_id=subscription.subscription_id,
            dropped=subscription.dropped,
        )

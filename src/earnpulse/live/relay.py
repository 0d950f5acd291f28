"""Mirror live bus events onto a Redis pub/sub channel.

Lets processes other than the API server (dashboards, workers) follow the
live feed without holding an SSE connection.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from earnpulse.core.constants import EVENT_RELAY_CHANNEL
from earnpulse.core.events import Event, EventBus, Subscription
from earnpulse.core.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class RedisEventRelay:
    """Forward every bus event to ``channel`` as JSON."""

    def __init__(self, bus: EventBus, redis: Redis, channel: str = EVENT_RELAY_CHANNEL) -> None:
        self._bus = bus
        self._redis = redis
        self._channel = channel
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[None] | None = None
        self.relayed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._subscription = self._bus.subscribe()
        self._task = asyncio.create_task(self._run(self._subscription), name="event-relay")
        logger.info("Event relay started", channel=self._channel)

    async def stop(self) -> None:
        if self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Event relay stopped", relayed=self.relayed)

    async def _run(self, subscription: Subscription) -> None:
        async for event in subscription:
            await self._forward(event)

    async def _forward(self, event: Event) -> None:
        try:
            await self._redis.publish(self._channel, event.to_json())
        except RedisError as e:
            logger.warning(
                "Event relay publish failed",
                event_type=event.event_type.value,
                error=str(e),
            )
            return
        self.relayed += 1

"""Wiring for the live polling engine.

``engine_lifespan`` builds every engine component, yields them as an
``EngineState`` and tears them down in reverse on exit. The FastAPI app and
tests both go through it, so there are no module-level engine singletons.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from earnpulse.core.events import EventBus
from earnpulse.core.logging import get_logger
from earnpulse.live.manager import PollingManager, create_scheduler
from earnpulse.live.period import FiscalCalendar
from earnpulse.live.persistence import PersistenceBridge
from earnpulse.live.relay import RedisEventRelay
from earnpulse.providers.factory import create_earnings_source
from earnpulse.storage.database import close_database, init_database
from earnpulse.storage.redis import close_redis, init_redis

if TYPE_CHECKING:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler
    from redis.asyncio import Redis

    from earnpulse.config import Settings
    from earnpulse.providers.base import EarningsSource
    from earnpulse.storage.database import Database

logger = get_logger(__name__)


@dataclass
class EngineState:
    """Holds references to all running engine resources."""

    settings: Settings
    bus: EventBus
    manager: PollingManager
    scheduler: AsyncIOScheduler
    source: EarningsSource
    calendar: FiscalCalendar
    started_at: datetime
    redis: Redis | None = None
    db: Database | None = None
    relay: RedisEventRelay | None = None

    @property
    def db_enabled(self) -> bool:
        return self.db is not None

    @property
    def relay_enabled(self) -> bool:
        return self.relay is not None and self.relay.running


@asynccontextmanager
async def engine_lifespan(
    settings: Settings,
    source: EarningsSource | None = None,
) -> AsyncIterator[EngineState]:
    """Async context manager that starts/stops the live polling engine.

    ``source`` overrides the configured earnings source (used by tests).
    """
    redis: Redis | None = None
    db: Database | None = None
    scheduler: AsyncIOScheduler | None = None
    manager: PollingManager | None = None
    relay: RedisEventRelay | None = None

    calendar = FiscalCalendar(settings.fiscal_year_end_months)
    if source is None:
        source = create_earnings_source(settings, calendar=calendar)

    try:
        # 1. Redis (optional; only the event relay depends on it)
        if settings.live_event_relay_enabled:
            try:
                logger.debug("Connecting to Redis")
                redis = await init_redis(settings.redis_url)
                logger.debug("Redis connected")
            except Exception as e:
                logger.warning(
                    "Redis connection failed, continuing without event relay",
                    error=str(e),
                )
        else:
            logger.info("Event relay disabled, skipping Redis")

        # 2. PostgreSQL (if configured)
        if settings.database_url:
            try:
                logger.debug("Connecting to PostgreSQL")
                db = await init_database(settings.database_url)
                logger.debug("PostgreSQL connected")
            except Exception as e:
                logger.warning(
                    "PostgreSQL connection failed, continuing without snapshot storage",
                    error=str(e),
                )
        else:
            logger.info("No DATABASE_URL configured, skipping snapshot storage")

        # 3. Bus, scheduler, manager
        bus = EventBus(queue_size=settings.live_subscriber_queue_size)
        scheduler = create_scheduler()
        scheduler.start()
        manager = PollingManager(
            source,
            bus,
            scheduler,
            calendar=calendar,
            persistence=PersistenceBridge(db) if db else None,
            default_interval_ms=settings.live_poll_interval_ms,
            fetch_timeout=settings.live_fetch_timeout_seconds,
            persist_on_change=settings.live_persist_on_change,
        )

        # 4. Relay bus events to Redis
        if redis is not None:
            relay = RedisEventRelay(bus, redis)
            relay.start()

        logger.info(
            "Live engine started",
            default_interval_ms=settings.live_poll_interval_ms,
            db_enabled=db is not None,
            relay_enabled=relay is not None,
        )

        yield EngineState(
            settings=settings,
            bus=bus,
            manager=manager,
            scheduler=scheduler,
            source=source,
            calendar=calendar,
            started_at=datetime.now(UTC),
            redis=redis,
            db=db,
            relay=relay,
        )

    finally:
        logger.info("Shutting down live engine...")

        if manager:
            manager.shutdown()

        if scheduler and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.debug("Scheduler stopped")

        if relay:
            await relay.stop()

        try:
            await source.close()
        except Exception as e:
            logger.error("Failed to close earnings source", error=str(e))

        if db:
            await close_database()
            logger.debug("PostgreSQL disconnected")

        if redis:
            await close_redis()
            logger.debug("Redis disconnected")

        logger.info("Live engine shutdown complete")

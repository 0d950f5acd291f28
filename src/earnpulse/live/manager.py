"""Polling session manager for live earnings subjects.

Each active subject owns one APScheduler interval job. A job run performs the
fetch-compare-publish cycle:

    source.fetch(subject)  ->  has_material_change(previous, next)
        -> publish "update" (always) and "change" (if material)
        -> replace the stored snapshot

Fetch failures and timeouts never escape a cycle. They are folded into an
``unknown`` snapshot plus an "error" event so the job keeps firing.

Concurrency rules:
- At most one session per subject key; ``start`` on a polled subject is
  stop-then-start.
- Scheduled runs never overlap (``max_instances=1`` skips a tick while the
  previous one is still running). Manual refreshes and scheduled runs for the
  same subject serialize on a per-subject lock.
- ``stop`` removes the job before dropping the session. A cycle that was
  already awaiting the source completes and then discards its result: nothing
  is published and nothing is stored for a session that is no longer current.
  The same holds for a manual refresh of a polled subject: if its session is
  stopped or replaced while the fetch is in flight, the result is returned to
  the caller but never published, cached or persisted.
"""

from __future__ import annotations

import asyncio
import itertools
import weakref
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from earnpulse.core.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_MS,
    MAX_CACHED_SUBJECTS,
)
from earnpulse.core.events import EventBus, EventType
from earnpulse.core.exceptions import AdapterError, InvalidIntervalError, PersistenceError
from earnpulse.core.logging import get_logger
from earnpulse.live.detector import has_material_change
from earnpulse.live.models import EarningsStatus, SessionInfo, Snapshot, subject_key
from earnpulse.live.period import FiscalCalendar

if TYPE_CHECKING:
    from earnpulse.live.persistence import PersistenceBridge
    from earnpulse.providers.base import EarningsSource

logger = get_logger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Create a new scheduler instance."""
    return AsyncIOScheduler(timezone="UTC")


def validate_interval(interval_ms: object) -> int:
    """Return ``interval_ms`` if it is a positive integer, else raise."""
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
        raise InvalidIntervalError(
            f"interval_ms must be a positive number of milliseconds, got {interval_ms!r}"
        )
    return interval_ms


@dataclass(eq=False)
class PollingSession:
    """Runtime state of one actively polled subject."""

    subject: str
    interval_ms: int
    job_id: str
    started_at: datetime
    active: bool = True
    last_snapshot: Snapshot | None = None
    cycles: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None

    @property
    def key(self) -> str:
        return subject_key(self.subject)

    def info(self) -> SessionInfo:
        return SessionInfo(
            subject=self.subject,
            interval_ms=self.interval_ms,
            last_updated=self.last_snapshot.fetched_at if self.last_snapshot else None,
            started_at=self.started_at,
            cycles=self.cycles,
            consecutive_failures=self.consecutive_failures,
            last_error=self.last_error,
        )


class PollingManager:
    """Owns the subject -> session map and the per-session interval jobs.

    All public methods must be called from the event loop that runs the
    scheduler; the session map is only mutated in synchronous sections.

    Usage:
        scheduler = create_scheduler()
        scheduler.start()
        manager = PollingManager(source, bus, scheduler)
        manager.start("Acme", interval_ms=60_000)
        snapshot = await manager.manual_refresh("Acme")
        manager.stop("Acme")
    """

    def __init__(
        self,
        source: EarningsSource,
        bus: EventBus,
        scheduler: AsyncIOScheduler,
        *,
        calendar: FiscalCalendar | None = None,
        persistence: PersistenceBridge | None = None,
        default_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        persist_on_change: bool = False,
        max_cached_subjects: int = MAX_CACHED_SUBJECTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._bus = bus
        self._scheduler = scheduler
        self._calendar = calendar or FiscalCalendar()
        self._persistence = persistence
        self._default_interval_ms = validate_interval(default_interval_ms)
        self._fetch_timeout = fetch_timeout
        self._persist_on_change = persist_on_change
        self._clock = clock or (lambda: datetime.now(UTC))
        self._max_cached_subjects = max_cached_subjects

        self._sessions: dict[str, PollingSession] = {}
        # Bounded; oldest entries are evicted first
        self._last_known: OrderedDict[str, Snapshot] = OrderedDict()
        # Entries vanish once no cycle holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._job_ids = itertools.count(1)

    @property
    def active_subjects(self) -> list[str]:
        return [session.subject for session in self._sessions.values()]

    def is_polling(self, subject: str) -> bool:
        return subject_key(subject) in self._sessions

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def start(self, subject: str, interval_ms: int | None = None) -> SessionInfo:
        """Start (or restart) polling a subject.

        The first cycle is dispatched immediately and is in flight when this
        returns; later cycles repeat every ``interval_ms``.

        Raises:
            InvalidIntervalError: If ``interval_ms`` is not positive
        """
        interval_ms = validate_interval(
            self._default_interval_ms if interval_ms is None else interval_ms
        )
        subject = subject.strip()
        if not subject:
            raise ValueError("subject must not be empty")

        key = subject_key(subject)
        if key in self._sessions:
            self.stop(subject)

        session = PollingSession(
            subject=subject,
            interval_ms=interval_ms,
            job_id=f"live-poll:{key}:{next(self._job_ids)}",
            started_at=self._clock(),
        )
        self._sessions[key] = session
        self._scheduler.add_job(
            self._scheduled_cycle,
            IntervalTrigger(seconds=interval_ms / 1000),
            args=[session],
            id=session.job_id,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            next_run_time=datetime.now(UTC),
        )

        logger.info("Polling started", subject=subject, interval_ms=interval_ms)
        self._bus.publish(
            EventType.POLLING_STARTED,
            {"subject": subject, "interval_ms": interval_ms},
            subject=subject,
        )
        return session.info()

    def stop(self, subject: str) -> bool:
        """Stop polling a subject. Returns False if it was not being polled."""
        key = subject_key(subject)
        session = self._sessions.get(key)
        if session is None:
            logger.debug("Stop requested for subject without a session", subject=subject)
            return False

        # Cancel the timer before the session disappears from the map
        self._remove_job(session)
        session.active = False
        del self._sessions[key]

        logger.info("Polling stopped", subject=session.subject, cycles=session.cycles)
        self._bus.publish(
            EventType.POLLING_STOPPED,
            {"subject": session.subject},
            subject=session.subject,
        )
        return True

    def status(self) -> list[SessionInfo]:
        """Describe every active session."""
        return [session.info() for session in self._sessions.values()]

    def last_snapshot(self, subject: str) -> Snapshot | None:
        """Last successfully fetched snapshot for a subject, if any."""
        key = subject_key(subject)
        session = self._sessions.get(key)
        if session is not None and session.last_snapshot is not None:
            return session.last_snapshot
        return self._last_known.get(key)

    async def manual_refresh(self, subject: str, persist: bool = True) -> Snapshot:
        """Run one cycle now, whether or not the subject is being polled.

        Publishes exactly one "update", then "change" (if material), then
        "manual_refresh". On fetch failure "error" comes first, the degraded
        snapshot is carried by "update" and "manual_refresh", and it is
        returned without being cached or persisted. Snapshots with a known
        status are persisted when ``persist`` is set.

        If the subject's session is stopped or replaced while the fetch is in
        flight, the result is returned but nothing is published or stored.
        """
        subject = subject.strip()
        key = subject_key(subject)
        logger.info("Manual refresh requested", subject=subject)

        lock = self._lock_for(key)
        async with lock:
            polled = self._sessions.get(key)
            snapshot, error = await self._attempt(subject)

            if polled is not None and not self._is_current(polled):
                logger.debug(
                    "Discarding manual refresh for stopped session",
                    subject=polled.subject,
                    job_id=polled.job_id,
                )
                return snapshot

            session = self._sessions.get(key)
            name = session.subject if session else subject
            payload = snapshot.model_dump(mode="json")

            if error is not None:
                if session is not None:
                    session.consecutive_failures += 1
                    session.last_error = error
                self._publish_error(name, error)
                self._bus.publish(EventType.UPDATE, payload, subject=name)
                self._bus.publish(EventType.MANUAL_REFRESH, payload, subject=name)
                return snapshot

            previous = session.last_snapshot if session else self._last_known.get(key)
            self._publish_snapshot(name, previous, snapshot)
            self._bus.publish(EventType.MANUAL_REFRESH, payload, subject=name)

            if session is not None:
                session.last_snapshot = snapshot
                session.consecutive_failures = 0
                session.last_error = None
            self._remember(key, snapshot)

            if persist and snapshot.status is not EarningsStatus.unknown:
                await self._persist(snapshot)

        return snapshot

    async def fetch_once(self, subject: str) -> Snapshot:
        """Fetch a snapshot without touching sessions, caches or the bus.

        Raises:
            AdapterError: If the fetch fails or times out
        """
        subject = subject.strip()
        try:
            return await self._fetch(subject)
        except AdapterError:
            raise
        except TimeoutError as e:
            raise AdapterError(self._timeout_message(), subject=subject) from e
        except Exception as e:
            raise AdapterError(str(e) or type(e).__name__, subject=subject) from e

    def shutdown(self) -> None:
        """Stop every session."""
        for subject in self.active_subjects:
            self.stop(subject)

    # -------------------------------------------------------------------------
    # Fetch cycle
    # -------------------------------------------------------------------------

    async def _scheduled_cycle(self, session: PollingSession) -> None:
        lock = self._lock_for(session.key)
        async with lock:
            if not self._is_current(session):
                return

            snapshot, error = await self._attempt(session.subject)

            if not self._is_current(session):
                logger.debug(
                    "Discarding result for stopped session",
                    subject=session.subject,
                    job_id=session.job_id,
                )
                return

            session.cycles += 1
            if error is not None:
                session.consecutive_failures += 1
                session.last_error = error
                logger.warning(
                    "Live poll failed",
                    subject=session.subject,
                    error=error,
                    consecutive_failures=session.consecutive_failures,
                )
                self._publish_error(session.subject, error)
                return

            changed = self._publish_snapshot(session.subject, session.last_snapshot, snapshot)
            session.last_snapshot = snapshot
            session.consecutive_failures = 0
            session.last_error = None
            self._remember(session.key, snapshot)

            if changed and self._persist_on_change:
                await self._persist(snapshot)

    async def _fetch(self, subject: str) -> Snapshot:
        return await asyncio.wait_for(self._source.fetch(subject), timeout=self._fetch_timeout)

    async def _attempt(self, subject: str) -> tuple[Snapshot, str | None]:
        """Fetch, folding any failure into a degraded snapshot and a message."""
        try:
            return await self._fetch(subject), None
        except TimeoutError:
            message = self._timeout_message()
        except AdapterError as e:
            message = e.message
        except Exception as e:
            logger.exception("Unexpected source failure", subject=subject)
            message = str(e) or type(e).__name__

        now = self._clock()
        period = self._calendar.period_for(subject, now)
        return Snapshot.unavailable(subject, period, message, now), message

    def _publish_snapshot(self, subject: str, previous: Snapshot | None, snapshot: Snapshot) -> bool:
        changed = has_material_change(previous, snapshot)
        payload = snapshot.model_dump(mode="json")
        self._bus.publish(EventType.UPDATE, payload, subject=subject)
        if changed:
            logger.info(
                "New data detected",
                subject=subject,
                status=snapshot.status.value,
                period=str(snapshot.period),
            )
            self._bus.publish(EventType.CHANGE, payload, subject=subject)
        return changed

    def _publish_error(self, subject: str, message: str) -> None:
        self._bus.publish(
            EventType.ERROR,
            {"subject": subject, "message": message},
            subject=subject,
        )

    async def _persist(self, snapshot: Snapshot) -> None:
        if self._persistence is None:
            return
        try:
            await self._persistence.upsert(snapshot)
        except PersistenceError as e:
            logger.error("Snapshot persistence failed", subject=snapshot.subject, error=e.message)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _remember(self, key: str, snapshot: Snapshot) -> None:
        self._last_known[key] = snapshot
        self._last_known.move_to_end(key)
        while len(self._last_known) > self._max_cached_subjects:
            evicted, _ = self._last_known.popitem(last=False)
            logger.debug("Evicted last-known snapshot", subject_key=evicted)

    def _is_current(self, session: PollingSession) -> bool:
        return session.active and self._sessions.get(session.key) is session

    def _remove_job(self, session: PollingSession) -> None:
        try:
            self._scheduler.remove_job(session.job_id)
        except JobLookupError:
            logger.debug("Polling job already removed", job_id=session.job_id)

    def _timeout_message(self) -> str:
        return f"Fetch timed out after {self._fetch_timeout:g}s"

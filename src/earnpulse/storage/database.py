"""PostgreSQL database connection using raw asyncpg."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast

import asyncpg

from earnpulse.core.exceptions import DatabaseConnectionError
from earnpulse.core.logging import get_logger

if TYPE_CHECKING:
    from earnpulse.live.models import Snapshot

logger = get_logger(__name__)

EARNINGS_SNAPSHOTS_DDL = """
    CREATE TABLE IF NOT EXISTS earnings_snapshots (
        id BIGSERIAL PRIMARY KEY,
        subject TEXT NOT NULL,
        subject_key TEXT NOT NULL,
        fiscal_quarter TEXT NOT NULL,
        fiscal_year TEXT NOT NULL,
        status TEXT NOT NULL,
        revenue TEXT,
        revenue_expected TEXT,
        revenue_beat_miss TEXT,
        revenue_yoy TEXT,
        eps TEXT,
        eps_expected TEXT,
        eps_beat_miss TEXT,
        eps_yoy TEXT,
        guidance TEXT,
        guidance_notes TEXT,
        stock_reaction TEXT,
        analyst_reaction TEXT,
        summary TEXT,
        headlines TEXT[] NOT NULL DEFAULT '{}',
        fetched_at TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (subject_key, fiscal_quarter, fiscal_year)
    )
"""

_UPSERT_SNAPSHOT_QUERY = """
    INSERT INTO earnings_snapshots (
        subject, subject_key, fiscal_quarter, fiscal_year, status,
        revenue, revenue_expected, revenue_beat_miss, revenue_yoy,
        eps, eps_expected, eps_beat_miss, eps_yoy,
        guidance, guidance_notes, stock_reaction, analyst_reaction,
        summary, headlines, fetched_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17, $18, $19, $20)
    ON CONFLICT (subject_key, fiscal_quarter, fiscal_year) DO UPDATE SET
        subject = EXCLUDED.subject,
        status = EXCLUDED.status,
        revenue = COALESCE(EXCLUDED.revenue, earnings_snapshots.revenue),
        revenue_expected = COALESCE(EXCLUDED.revenue_expected, earnings_snapshots.revenue_expected),
        revenue_beat_miss = COALESCE(EXCLUDED.revenue_beat_miss, earnings_snapshots.revenue_beat_miss),
        revenue_yoy = COALESCE(EXCLUDED.revenue_yoy, earnings_snapshots.revenue_yoy),
        eps = COALESCE(EXCLUDED.eps, earnings_snapshots.eps),
        eps_expected = COALESCE(EXCLUDED.eps_expected, earnings_snapshots.eps_expected),
        eps_beat_miss = COALESCE(EXCLUDED.eps_beat_miss, earnings_snapshots.eps_beat_miss),
        eps_yoy = COALESCE(EXCLUDED.eps_yoy, earnings_snapshots.eps_yoy),
        guidance = COALESCE(EXCLUDED.guidance, earnings_snapshots.guidance),
        guidance_notes = COALESCE(EXCLUDED.guidance_notes, earnings_snapshots.guidance_notes),
        stock_reaction = COALESCE(EXCLUDED.stock_reaction, earnings_snapshots.stock_reaction),
        analyst_reaction = COALESCE(EXCLUDED.analyst_reaction, earnings_snapshots.analyst_reaction),
        summary = COALESCE(EXCLUDED.summary, earnings_snapshots.summary),
        headlines = CASE
            WHEN cardinality(EXCLUDED.headlines) > 0 THEN EXCLUDED.headlines
            ELSE earnings_snapshots.headlines
        END,
        fetched_at = EXCLUDED.fetched_at,
        updated_at = NOW()
    RETURNING *, (xmax = 0) AS is_new
"""


class Database:
    """Async PostgreSQL database wrapper using asyncpg."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool[asyncpg.Record] | None = None

    async def connect(self) -> None:
        """Create connection pool."""
        # Convert SQLAlchemy-style DSN to asyncpg format
        dsn = self._dsn.replace("postgresql+asyncpg://", "postgresql://")

        try:
            self._pool = await asyncpg.create_pool(
                dsn,
                min_size=self._min_size,
                max_size=self._max_size,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise DatabaseConnectionError(f"Failed to connect to PostgreSQL: {e}") from e
        logger.debug("Database pool created", min_size=self._min_size, max_size=self._max_size)

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.debug("Database pool closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection[asyncpg.Record]]:
        """Acquire a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected. Call connect() first.")
        async with self._pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Execute a query and return status."""
        async with self.acquire() as conn:
            result = await conn.execute(query, *args)
            return cast(str, result)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Fetch multiple rows."""
        async with self.acquire() as conn:
            result = await conn.fetch(query, *args)
            return list(result)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Fetch a single row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Fetch a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def ensure_schema(self) -> None:
        """Create the earnings_snapshots table if it does not exist."""
        await self.execute(EARNINGS_SNAPSHOTS_DDL)
        logger.debug("Schema ensured", table="earnings_snapshots")

    # -------------------------------------------------------------------------
    # Live earnings snapshots
    # -------------------------------------------------------------------------

    async def upsert_earnings_snapshot(self, snapshot: Snapshot) -> dict[str, Any]:
        """Insert a snapshot or replace the row for its (subject, period).

        Status and fetch time always come from the new snapshot. Metric fields
        and the summary are only overwritten when the new value is non-null,
        so a later poll that omits a figure keeps the stored one.

        Args:
            snapshot: Snapshot to store

        Returns:
            The stored row as a dict (with an ``is_new`` flag)
        """
        row = await self.fetchrow(
            _UPSERT_SNAPSHOT_QUERY,
            snapshot.subject,
            snapshot.key,
            snapshot.period.quarter,
            snapshot.period.fiscal_year,
            snapshot.status.value,
            snapshot.revenue,
            snapshot.revenue_expected,
            snapshot.revenue_beat_miss,
            snapshot.revenue_yoy,
            snapshot.eps,
            snapshot.eps_expected,
            snapshot.eps_beat_miss,
            snapshot.eps_yoy,
            snapshot.guidance,
            snapshot.guidance_notes,
            snapshot.stock_reaction,
            snapshot.analyst_reaction,
            snapshot.summary,
            list(snapshot.headlines),
            snapshot.fetched_at,
        )
        if row is None:
            raise RuntimeError(f"Snapshot upsert returned no row for {snapshot.subject}")

        record = dict(row)
        logger.debug(
            "Earnings snapshot upserted",
            subject=snapshot.subject,
            period=str(snapshot.period),
            status=snapshot.status.value,
            is_new=record.get("is_new"),
        )
        return record

    async def get_earnings_snapshots(self, subject: str, limit: int = 20) -> list[dict[str, Any]]:
        """Get stored snapshots for a subject, most recent period first."""
        query = """
            SELECT *
            FROM earnings_snapshots
            WHERE subject_key = $1
            ORDER BY fetched_at DESC
            LIMIT $2
        """
        rows = await self.fetch(query, subject.strip().lower(), limit)
        return [dict(row) for row in rows]


# Global database instance (initialized in lifespan)
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


async def init_database(dsn: str) -> Database:
    """Initialize the global database instance."""
    global _db
    db = Database(dsn)
    await db.connect()
    await db.ensure_schema()
    _db = db
    return _db


async def close_database() -> None:
    """Close the global database instance."""
    global _db
    if _db:
        await _db.disconnect()
        _db = None

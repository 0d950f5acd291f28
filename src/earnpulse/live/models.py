"""Pydantic models for live earnings polling."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from earnpulse.core.constants import MAX_HEADLINES


class EarningsStatus(StrEnum):
    """Where a subject is in its earnings cycle."""

    pending = "pending"
    in_progress = "in_progress"
    released = "released"
    unknown = "unknown"


class FiscalPeriod(BaseModel):
    """Reporting cycle + fiscal year, e.g. Q3 / FY2025."""

    model_config = ConfigDict(frozen=True)

    quarter: str  # "Q1".."Q4"
    fiscal_year: str  # "FY2025"

    def __str__(self) -> str:
        return f"{self.quarter} {self.fiscal_year}"


# Nullable scalar metrics; None means "not yet known", never zero.
# The free-text summary is prose, not a metric, and is excluded.
METRIC_FIELDS: tuple[str, ...] = (
    "revenue",
    "revenue_expected",
    "revenue_beat_miss",
    "revenue_yoy",
    "eps",
    "eps_expected",
    "eps_beat_miss",
    "eps_yoy",
    "guidance",
    "guidance_notes",
    "stock_reaction",
    "analyst_reaction",
)


class Snapshot(BaseModel):
    """One fetch result for one subject at one point in time."""

    model_config = ConfigDict(frozen=True)

    subject: str
    period: FiscalPeriod
    status: EarningsStatus = EarningsStatus.unknown
    fetched_at: datetime

    # Revenue - actual vs expected
    revenue: str | None = None  # "$24.9B"
    revenue_expected: str | None = None
    revenue_beat_miss: str | None = None  # "beat", "+1.6%"
    revenue_yoy: str | None = None  # "+11%"

    # EPS - actual vs expected
    eps: str | None = None  # "$2.41"
    eps_expected: str | None = None
    eps_beat_miss: str | None = None
    eps_yoy: str | None = None

    # Guidance
    guidance: str | None = None  # "raised", "maintained", "lowered"
    guidance_notes: str | None = None

    # Market reaction
    stock_reaction: str | None = None  # "+5.2%"
    analyst_reaction: str | None = None

    summary: str | None = None
    headlines: list[str] = Field(default_factory=list)

    @field_validator("headlines")
    @classmethod
    def cap_headlines(cls, v: list[str]) -> list[str]:
        return [h.strip() for h in v if h and h.strip()][:MAX_HEADLINES]

    @property
    def key(self) -> str:
        return subject_key(self.subject)

    @property
    def has_signal(self) -> bool:
        """False when nothing has been learned yet (unknown status, no metrics)."""
        if self.status is not EarningsStatus.unknown:
            return True
        return any(getattr(self, name) is not None for name in METRIC_FIELDS)

    @classmethod
    def unavailable(
        cls,
        subject: str,
        period: FiscalPeriod,
        message: str,
        at: datetime,
    ) -> Snapshot:
        """Degraded snapshot standing in for a failed fetch."""
        return cls(
            subject=subject,
            period=period,
            status=EarningsStatus.unknown,
            fetched_at=at,
            summary=f"Unable to fetch live data: {message}",
        )


class SessionInfo(BaseModel):
    """Public view of an active polling session."""

    subject: str
    interval_ms: int
    last_updated: datetime | None = None
    started_at: datetime
    cycles: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None


def subject_key(subject: str) -> str:
    """Normalize a subject into its session/cache key."""
    return subject.strip().lower()

"""Live earnings polling engine."""

from earnpulse.live.models import EarningsStatus, FiscalPeriod, SessionInfo, Snapshot, subject_key

__all__ = [
    "EarningsStatus",
    "FiscalPeriod",
    "SessionInfo",
    "Snapshot",
    "subject_key",
]

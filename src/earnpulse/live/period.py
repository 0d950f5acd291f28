"""Fiscal period derivation.

Earnings are reported after a quarter closes, so the period a snapshot
describes is the most recently *completed* fiscal quarter at fetch time.
Fiscal years are labelled by the calendar year in which they end, which is
how companies with mid-year year-ends (e.g. June) name them.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from earnpulse.core.constants import DEFAULT_FISCAL_YEAR_END_MONTH
from earnpulse.live.models import FiscalPeriod, subject_key


def derive_period(at: datetime, year_end_month: int = DEFAULT_FISCAL_YEAR_END_MONTH) -> FiscalPeriod:
    """Return the last completed fiscal quarter as of ``at``.

    Args:
        at: Fetch time
        year_end_month: Calendar month (1-12) in which the fiscal year ends

    Returns:
        FiscalPeriod, e.g. Q3 / FY2026 for October 2026 with a December year-end
    """
    if not 1 <= year_end_month <= 12:
        raise ValueError(f"year_end_month must be 1-12, got {year_end_month}")

    # Months elapsed since the current fiscal year began (0-11)
    months_into_year = (at.month - year_end_month - 1) % 12
    current_quarter = months_into_year // 3 + 1
    current_year = at.year if at.month <= year_end_month else at.year + 1

    if current_quarter == 1:
        return FiscalPeriod(quarter="Q4", fiscal_year=f"FY{current_year - 1}")
    return FiscalPeriod(quarter=f"Q{current_quarter - 1}", fiscal_year=f"FY{current_year}")


class FiscalCalendar:
    """Per-subject fiscal year-end lookup.

    Usage:
        calendar = FiscalCalendar({"microsoft": 6})
        calendar.period_for("Microsoft", datetime(2026, 10, 17, tzinfo=UTC))
        # FiscalPeriod(quarter="Q1", fiscal_year="FY2027")
    """

    def __init__(
        self,
        year_end_months: Mapping[str, int] | None = None,
        default_year_end_month: int = DEFAULT_FISCAL_YEAR_END_MONTH,
    ) -> None:
        self._year_end_months = {
            subject_key(subject): month for subject, month in (year_end_months or {}).items()
        }
        self._default = default_year_end_month

    def year_end_month(self, subject: str) -> int:
        return self._year_end_months.get(subject_key(subject), self._default)

    def period_for(self, subject: str, at: datetime) -> FiscalPeriod:
        return derive_period(at, self.year_end_month(subject))

"""Provider factory for creating live earnings sources.

This module builds the configured EarningsSource so the engine never imports
a concrete provider directly.

Usage:
    from earnpulse.providers import create_earnings_source

    source = create_earnings_source(settings, calendar)
    snapshot = await source.fetch("Acme")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from earnpulse.core.logging import get_logger
from earnpulse.live.period import FiscalCalendar
from earnpulse.providers.base import EarningsSource
from earnpulse.providers.perplexity import PerplexityEarningsSource

if TYPE_CHECKING:
    from earnpulse.config import Settings

logger = get_logger(__name__)


def create_earnings_source(
    settings: Settings,
    calendar: FiscalCalendar | None = None,
) -> EarningsSource:
    """Create the live earnings source based on settings.

    Args:
        settings: Application settings
        calendar: Fiscal calendar for period derivation (built from settings if omitted)

    Returns:
        EarningsSource implementation
    """
    if calendar is None:
        calendar = FiscalCalendar(settings.fiscal_year_end_months)

    api_key = settings.perplexity_api_key.get_secret_value() if settings.perplexity_api_key else None
    if not api_key:
        logger.warning(
            "PERPLEXITY_API_KEY not set, every live fetch will report an error event"
        )

    source = PerplexityEarningsSource(
        api_key=api_key,
        calendar=calendar,
        base_url=settings.perplexity_base_url,
        model=settings.perplexity_model,
    )
    logger.debug("Created earnings source", provider="perplexity", model=settings.perplexity_model)
    return source

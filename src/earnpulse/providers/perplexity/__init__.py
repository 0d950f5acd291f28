"""Perplexity provider for live earnings snapshots.

Uses the Perplexity chat completions API (online search models).
"""

from earnpulse.providers.perplexity.client import PerplexityEarningsSource
from earnpulse.providers.perplexity.models import EarningsAnswer

__all__ = [
    "EarningsAnswer",
    "PerplexityEarningsSource",
]

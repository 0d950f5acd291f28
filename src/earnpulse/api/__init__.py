"""HTTP API for the live earnings engine."""

from earnpulse.api.router import api_router

__all__ = ["api_router"]

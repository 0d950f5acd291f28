"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from earnpulse import __version__
from earnpulse.api import api_router
from earnpulse.config import get_settings
from earnpulse.core.dependencies import EngineStateDep
from earnpulse.core.logging import get_logger, setup_logging
from earnpulse.live.runtime import engine_lifespan

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: runs the live polling engine alongside the HTTP server."""
    settings = get_settings()
    setup_logging(settings)

    async with engine_lifespan(settings) as state:
        app.state.engine = state
        logger.info("EarnPulse ready", env=settings.env)
        yield


app = FastAPI(
    title="EarnPulse",
    description="Live earnings polling with change detection and streaming updates",
    version=__version__,
    lifespan=lifespan,
)

# Infrastructure (no prefix, not versioned)


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check, always ok if process is running."""
    return {"status": "ok"}


@app.get("/ready")
async def ready(state: EngineStateDep) -> dict[str, str]:
    """Readiness check: verifies infrastructure is connected."""
    checks: dict[str, str] = {}
    if state.redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await state.redis.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "error"
    checks["db"] = "ok" if state.db else "disabled"
    checks["scheduler"] = "ok" if state.scheduler.running else "error"
    status = "ready" if all(v != "error" for v in checks.values()) else "not_ready"
    return {"status": status, **checks}


# Domain API
app.include_router(api_router, prefix="/api/v1")

"""System status and config endpoints."""

from fastapi import APIRouter

from earnpulse.core.dependencies import EngineStateDep, SettingsDep

router = APIRouter()


@router.get("/status")
async def system_status(state: EngineStateDep) -> dict[str, object]:
    return {
        "scheduler_running": state.scheduler.running,
        "active_sessions": len(state.manager.status()),
        "stream_subscribers": state.bus.subscriber_count,
        "db_enabled": state.db_enabled,
        "relay_enabled": state.relay_enabled,
        "started_at": state.started_at.isoformat(),
    }


@router.get("/config")
async def system_config(settings: SettingsDep) -> dict[str, object]:
    return {
        "env": settings.env,
        "perplexity_model": settings.perplexity_model,
        "perplexity_enabled": settings.perplexity_api_key is not None,
        "database_enabled": bool(settings.database_url),
        "live_poll_interval_ms": settings.live_poll_interval_ms,
        "live_fetch_timeout_seconds": settings.live_fetch_timeout_seconds,
        "live_heartbeat_interval_seconds": settings.live_heartbeat_interval_seconds,
        "live_persist_on_change": settings.live_persist_on_change,
        "fiscal_year_end_months": settings.fiscal_year_end_months,
    }

"""Live earnings polling endpoints.

Control surface for polling sessions plus the server-sent events stream that
carries every engine event to dashboards.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import AliasChoices, BaseModel, Field, field_validator

from earnpulse.core.dependencies import DbDep, EngineStateDep, PollingManagerDep
from earnpulse.core.exceptions import AdapterError, InvalidIntervalError
from earnpulse.core.logging import get_logger
from earnpulse.live.gateway import StreamGateway
from earnpulse.live.models import Snapshot

logger = get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request models (accept both "subject" and the dashboard's "company")
# ---------------------------------------------------------------------------


class SubjectRequest(BaseModel):
    subject: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("subject", "company"),
        description="Company name or ticker",
    )

    @field_validator("subject")
    @classmethod
    def strip_subject(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("subject must not be blank")
        return v


class StartRequest(SubjectRequest):
    interval_ms: int | None = Field(
        default=None,
        validation_alias=AliasChoices("interval_ms", "intervalMs"),
        description="Polling interval in milliseconds (server default if omitted)",
    )


class RefreshRequest(SubjectRequest):
    persist: bool = Field(default=True, description="Upsert the snapshot if its status is known")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sessions(manager: PollingManagerDep) -> dict[str, Any]:
    return {"active_sessions": [s.model_dump(mode="json") for s in manager.status()]}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/start")
async def start_polling(body: StartRequest, manager: PollingManagerDep) -> dict[str, Any]:
    """Start (or restart) polling a subject; the first fetch begins immediately."""
    try:
        manager.start(body.subject, body.interval_ms)
    except InvalidIntervalError as e:
        raise HTTPException(status_code=422, detail=e.message)
    return _sessions(manager)


@router.post("/stop")
async def stop_polling(body: SubjectRequest, manager: PollingManagerDep) -> dict[str, Any]:
    """Stop polling a subject. Unknown subjects are a no-op."""
    manager.stop(body.subject)
    return _sessions(manager)


@router.post("/refresh", response_model=Snapshot)
async def refresh(body: RefreshRequest, manager: PollingManagerDep) -> Snapshot:
    """Fetch now and broadcast the result, polled or not."""
    return await manager.manual_refresh(body.subject, persist=body.persist)


@router.get("/status")
async def polling_status(manager: PollingManagerDep) -> dict[str, Any]:
    return _sessions(manager)


@router.get("/fetch/{subject}", response_model=Snapshot)
async def fetch_once(subject: str, manager: PollingManagerDep) -> Snapshot:
    """One-off fetch with no broadcast and no storage."""
    try:
        return await manager.fetch_once(subject)
    except AdapterError as e:
        logger.warning("One-off fetch failed", subject=subject, error=e.message)
        raise HTTPException(status_code=502, detail=e.message)


@router.get("/last/{subject}", response_model=Snapshot)
async def last_snapshot(subject: str, manager: PollingManagerDep) -> Snapshot:
    snapshot = manager.last_snapshot(subject)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No snapshot for {subject}")
    return snapshot


@router.get("/history/{subject}")
async def snapshot_history(
    subject: str,
    db: DbDep,
    limit: int = Query(20, ge=1, le=200, description="Max stored snapshots to return"),
) -> dict[str, Any]:
    """Stored snapshots for a subject, newest first."""
    rows = await db.get_earnings_snapshots(subject, limit=limit)
    return {"subject": subject, "snapshots": rows, "count": len(rows)}


@router.get("/stream")
async def stream_events(request: Request, state: EngineStateDep) -> StreamingResponse:
    """Server-sent events: connected, engine events as they happen, heartbeats."""
    gateway = StreamGateway(
        state.bus,
        heartbeat_interval=state.settings.live_heartbeat_interval_seconds,
        is_disconnected=request.is_disconnected,
    )
    return StreamingResponse(
        gateway.stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

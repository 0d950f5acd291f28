"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from earnpulse.config import Settings, get_settings
from earnpulse.core.events import EventBus
from earnpulse.live.manager import PollingManager
from earnpulse.live.runtime import EngineState
from earnpulse.storage.database import Database

# Type aliases for cleaner dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]


async def get_engine_state(request: Request) -> EngineState:
    """Get EngineState from app.state (set during lifespan)."""
    return request.app.state.engine  # type: ignore[no-any-return]


def get_polling_manager(state: EngineState = Depends(get_engine_state)) -> PollingManager:
    return state.manager


def get_event_bus(state: EngineState = Depends(get_engine_state)) -> EventBus:
    return state.bus


def get_db(state: EngineState = Depends(get_engine_state)) -> Database:
    """Get database dependency."""
    if state.db is None:
        raise HTTPException(status_code=503, detail="Snapshot storage not available (no DATABASE_URL)")
    return state.db


# Annotated dependencies for use in route handlers
EngineStateDep = Annotated[EngineState, Depends(get_engine_state)]
PollingManagerDep = Annotated[PollingManager, Depends(get_polling_manager)]
EventBusDep = Annotated[EventBus, Depends(get_event_bus)]
DbDep = Annotated[Database, Depends(get_db)]

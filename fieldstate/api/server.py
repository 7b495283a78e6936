"""
Field State API Server
======================

Read-only API over a field-state event store. Checks run in accumulate
mode and never repair.

Endpoints:
- GET /health
- GET /api/v1/fields                   -> Field names
- GET /api/v1/fields/{field}/check     -> Consistency summary
- GET /api/v1/fields/{field}/state     -> Active state at an instant
- GET /api/v1/fields/{field}/timeline  -> Derived state changes

Usage:
    uvicorn fieldstate.api.server:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..contracts.base import parse_instant
from ..contracts.errors import FieldStateError
from ..engine import EngineConfig, FieldStateEngine
from ..logger import get_logger
from .mapper import map_state_to_dto, map_summary_to_dto, map_timeline_to_dto

logger = get_logger(__name__)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    mode: str


class FieldListResponse(BaseModel):
    fields: List[str]


class ErrorDTO(BaseModel):
    type: str
    code: str
    field: str
    occur_time: str
    ids: List[str]
    message: str


class CheckResponse(BaseModel):
    field: str
    ok: bool
    errors: List[ErrorDTO]


class StateResponse(BaseModel):
    field: str
    at: Optional[str] = None
    state: Any = None
    simple: Any = None


class BoundaryDTO(BaseModel):
    id: str
    timestamp: str
    role: str
    last_state: Any = None
    active_state: Any = None


class TimelineResponse(BaseModel):
    field: str
    rows: List[BoundaryDTO]


# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

def get_engine(request: Request) -> FieldStateEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


def _instant(value: Optional[str], name: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_instant(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid {name}: {value!r}")


router = APIRouter()


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(engine: FieldStateEngine = Depends(get_engine)):
    """System status."""
    return {"status": "online", "mode": "read-only"}


@router.get("/api/v1/fields", response_model=FieldListResponse)
async def list_fields(engine: FieldStateEngine = Depends(get_engine)):
    return {"fields": engine.fields()}


@router.get("/api/v1/fields/{field}/check", response_model=CheckResponse)
async def check_field(
    field: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    engine: FieldStateEngine = Depends(get_engine)
):
    """
    Consistency check over [start, end).
    Always accumulates; repair is never triggered from the API.
    """
    try:
        summary = engine.check(
            field,
            start=_instant(start, "start"),
            end=_instant(end, "end"),
            fail_on_error=False,
            fix=False,
        )
    except FieldStateError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return map_summary_to_dto(field, summary)


@router.get("/api/v1/fields/{field}/state", response_model=StateResponse)
async def get_state(
    field: str,
    at: Optional[str] = None,
    engine: FieldStateEngine = Depends(get_engine)
):
    instant = _instant(at, "at")
    return map_state_to_dto(field, engine.active_state(field, at=instant), instant)


@router.get("/api/v1/fields/{field}/timeline", response_model=TimelineResponse)
async def get_timeline(
    field: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    engine: FieldStateEngine = Depends(get_engine)
):
    rows = engine.timeline(field, start=_instant(start, "start"), end=_instant(end, "end"))
    return map_timeline_to_dto(field, rows)


def create_app(engine: Optional[FieldStateEngine] = None) -> FastAPI:
    """Build the app; without an engine one is created from the environment on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            app.state.engine = engine
        else:
            config = EngineConfig.from_env()
            logger.info("Initializing engine (store: %s)", config.store.path or "memory")
            app.state.engine = FieldStateEngine(config)
        yield
        app.state.engine = None

    app = FastAPI(
        title="Field State API",
        version="0.1.0",
        description="Read-only timeline consistency API",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],  # STRICT READ-ONLY
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()

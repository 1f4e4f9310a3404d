"""FastAPI server for programmatic routing access."""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import click
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from adaptive_router import __version__
from adaptive_router.cognition import ActivityContext
from adaptive_router.config import load_config
from adaptive_router.errors import (
    DecisionNotFound,
    MissingProfile,
    SuggestionNotFound,
    UpstreamDataUnavailable,
    ValidationFailure,
)
from adaptive_router.logging_config import get_logger, setup_logging
from adaptive_router.models import TimeWindow
from adaptive_router.router import AdaptiveRouter
from adaptive_router.storage import PerformanceLedger

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config = load_config()
    async with PerformanceLedger(config.data_dir / "data" / "performance.db") as ledger:
        app.state.router = AdaptiveRouter(config, ledger=ledger)
        log.info("api_started", data_dir=str(config.data_dir))
        yield
        app.state.router = None


app = FastAPI(
    title="Adaptive Router API",
    version=__version__,
    description="Personalised task routing with drift-driven profile suggestions",
    lifespan=lifespan,
)

_start_time = time.monotonic()


def get_router(request: Request) -> AdaptiveRouter:
    """Router bound to the app; built without a ledger when lifespan did not run."""
    router = getattr(request.app.state, "router", None)
    if router is None:
        router = AdaptiveRouter(load_config())
        request.app.state.router = router
    return router


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST BODIES
# ═══════════════════════════════════════════════════════════════════════════


class ClassifyRequest(BaseModel):
    text: str


class RouteRequest(BaseModel):
    user_id: str
    text: str
    timestamp: datetime | None = None
    recent_interruptions: bool = False
    recent_task_switch: bool = False


class OutcomeRequest(BaseModel):
    success: bool
    latency_ms: float | None = Field(default=None, ge=0)
    rating: int | None = Field(default=None, ge=1, le=5)


class WindowRequest(BaseModel):
    user_id: str
    window: str = "30d"


class RejectRequest(BaseModel):
    reason: str = ""


def _window(text: str) -> TimeWindow:
    try:
        return TimeWindow.parse(text)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ═══════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════


@app.get("/api/health")
async def health() -> dict[str, Any]:
    """Health check."""
    uptime = time.monotonic() - _start_time
    return {"status": "ok", "version": __version__, "uptime_seconds": round(uptime, 1)}


@app.post("/api/classify")
async def classify(
    body: ClassifyRequest, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Classify a task without routing it."""
    return router.classify(body.text).to_dict()


@app.post("/api/route")
async def route(body: RouteRequest, router: AdaptiveRouter = Depends(get_router)) -> dict[str, Any]:
    """Route a task for a user and log the decision."""
    activity = ActivityContext(
        recent_interruptions=body.recent_interruptions,
        recent_task_switch=body.recent_task_switch,
    )
    try:
        decision = await router.route_for_user(body.user_id, body.text, body.timestamp, activity)
    except MissingProfile as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return decision.to_dict()


@app.post("/api/decisions/{decision_id}/outcome")
async def record_outcome(
    decision_id: str, body: OutcomeRequest, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Attach an execution outcome to a decision."""
    try:
        decision = await router.record_outcome(
            decision_id, body.success, latency_ms=body.latency_ms, rating=body.rating
        )
    except DecisionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UpstreamDataUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"decision_id": decision.decision_id, "worker_id": decision.worker_id, "recorded": True}


@app.get("/api/decisions")
async def decisions(
    limit: int = 20, user_id: str | None = None, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Recent routing decisions, newest first."""
    rows = router.decisions.recent(limit=limit, user_id=user_id)
    return {"decisions": [d.to_dict() for d in rows], "count": len(rows), "limit": limit}


@app.post("/api/drift")
async def drift(
    body: WindowRequest, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Run drift detection for a user."""
    try:
        records = router.detect_drift(body.user_id, _window(body.window))
    except MissingProfile as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"drift": [r.to_dict() for r in records], "count": len(records)}


@app.post("/api/suggestions")
async def generate_suggestions(
    body: WindowRequest, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Generate profile-update suggestions from drift."""
    try:
        suggestions = router.generate_suggestions(body.user_id, _window(body.window))
    except MissingProfile as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"suggestions": [s.to_dict() for s in suggestions], "count": len(suggestions)}


@app.get("/api/suggestions")
async def pending_suggestions(
    user_id: str | None = None, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Pending suggestions, optionally for one user."""
    pending = router.pending_suggestions(user_id)
    return {"suggestions": [s.to_dict() for s in pending], "count": len(pending)}


@app.get("/api/suggestions/stats")
async def suggestion_stats(
    user_id: str | None = None, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Generation and acceptance counts."""
    return router.suggestion_stats(user_id).to_dict()


def _result(result: Any) -> dict[str, Any]:
    return {
        "suggestion_id": result.suggestion_id,
        "applied": result.applied,
        "status": str(result.status) if result.status else None,
        "message": result.message,
    }


@app.post("/api/suggestions/{suggestion_id}/accept")
async def accept_suggestion(
    suggestion_id: int, router: AdaptiveRouter = Depends(get_router)
) -> dict[str, Any]:
    """Accept a suggestion and apply it to the profile."""
    try:
        return _result(router.accept_suggestion(suggestion_id))
    except SuggestionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/suggestions/{suggestion_id}/reject")
async def reject_suggestion(
    suggestion_id: int,
    body: RejectRequest | None = None,
    router: AdaptiveRouter = Depends(get_router),
) -> dict[str, Any]:
    """Reject a suggestion."""
    reason = body.reason if body else ""
    try:
        return _result(router.reject_suggestion(suggestion_id, reason))
    except SuggestionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@click.command()
@click.option("--port", default=3850, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--log-level", default=None, help="Log level (default WARNING)")
def main(port: int, host: str, log_level: str | None) -> None:
    """Start the Adaptive Router API server."""
    import uvicorn

    setup_logging(level=log_level)
    uvicorn.run(app, host=host, port=port)

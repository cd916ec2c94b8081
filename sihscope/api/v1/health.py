"""Health check endpoints for SIH Scope API v1."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe; does not touch the store or the listing site."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(time.time() - start_time, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe: the store answers and the pipeline is wired."""
    checks: dict[str, str] = {}
    all_ok = True

    store = getattr(request.app.state, "store", None)
    if store is not None:
        try:
            sessions = await store.list_sessions()
            checks["store"] = f"ok ({len(sessions)} sessions)"
        except Exception as exc:
            checks["store"] = f"error: {exc!s}"
            all_ok = False
    else:
        checks["store"] = "not_configured"
        all_ok = False

    if getattr(request.app.state, "orchestrator", None) is not None:
        checks["orchestrator"] = "ok"
    else:
        checks["orchestrator"] = "not_initialised"
        all_ok = False

    task = getattr(request.app.state, "campaign_task", None)
    checks["campaign"] = "running" if task is not None and task.is_running else "idle"

    status = "ready" if all_ok else "degraded"
    logger.info("health.readiness_check", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)

"""Main API router combining all v1 route modules.

Aggregates the v1 routers under the ``/api/v1`` prefix so the FastAPI
application only needs to include a single router.

Includes:
    * Scrape: per-year trigger, background campaign, status
    * Problems: listing, lookup, statistics
    * Health: liveness and readiness probes
"""

from __future__ import annotations

from fastapi import APIRouter

from sihscope.api.v1 import health, problems, scrape

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(scrape.router)
api_router.include_router(problems.router)
api_router.include_router(health.router)

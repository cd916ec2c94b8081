"""Problem statement query endpoints for SIH Scope v1.

Provides listing (with filters, sorting and pagination), single-record
lookup and aggregate statistics over the stored problem statements.
"""

from __future__ import annotations

from typing import Any, Literal

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from sihscope.services.storage.base import ProblemQuery, ProblemStore, SortField

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(tags=["problems"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ProblemListResponse(BaseModel):
    """Paginated list of problem statements."""

    problems: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
    pages: int


class StatsResponse(BaseModel):
    total_problems: int
    total_sessions: int
    completed_years: list[int]
    by_year: dict[str, int]
    by_category: dict[str, int]
    by_organization: dict[str, int]


def _get_store(request: Request) -> ProblemStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Problem store not initialised.")
    return store


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/problems", response_model=ProblemListResponse)
async def list_problems(
    request: Request,
    year: str | None = Query(default=None, description="Year (2024) or range (2020-2023)"),
    category: str | None = Query(default=None, description="Exact category, case-insensitive"),
    organization: str | None = Query(default=None, description="Organization name contains"),
    technology: str | None = Query(default=None, description="Technology contains"),
    search: str | None = Query(default=None, max_length=200, description="Free-text search"),
    sort_by: SortField = Query(default="year", description="Sort field"),
    order: Literal["asc", "desc"] = Query(default="desc", description="Sort order"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> ProblemListResponse:
    """List problem statements with optional filters."""
    store = _get_store(request)

    try:
        query = ProblemQuery(
            year=year,
            category=category,
            organization=organization,
            technology=technology,
            search=search,
            sort_by=sort_by,
            descending=order == "desc",
            page=page,
            page_size=page_size,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    result = await store.list_problems(query)
    return ProblemListResponse(
        problems=[p.model_dump(mode="json") for p in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get("/problems/{problem_id}")
async def get_problem(request: Request, problem_id: str) -> dict[str, Any]:
    """Full record of a single problem statement."""
    store = _get_store(request)
    problem = await store.get_problem(problem_id)
    if problem is None:
        raise HTTPException(status_code=404, detail=f"Problem statement '{problem_id}' not found.")
    return problem.model_dump(mode="json")


@router.get("/stats", response_model=StatsResponse)
async def get_stats(request: Request) -> StatsResponse:
    """Totals by year (newest first) and the top categories and organizations."""
    store = _get_store(request)
    stats = await store.stats()
    return StatsResponse(**stats.to_dict())

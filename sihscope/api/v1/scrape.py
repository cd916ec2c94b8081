"""Scrape trigger and status endpoints for SIH Scope v1.

Endpoints
---------
- ``POST /api/v1/scrape/year/{year}`` -- Scrape one year now.
- ``POST /api/v1/scrape/start``       -- Start a background campaign.
- ``GET  /api/v1/scrape/status``      -- Sessions and campaign state.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from sihscope.models.problem import edition_label
from sihscope.models.session import OutcomeStatus
from sihscope.services.scraping.config import ScraperConfig
from sihscope.services.scraping.errors import InvalidYearError, ScrapeInProgressError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/scrape", tags=["scrape"])


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class StartCampaignRequest(BaseModel):
    """Body for ``POST /scrape/start``; omit ``years`` for the full range."""

    years: list[int] | None = None
    force: bool = False


class ScrapeYearResponse(BaseModel):
    status: str
    message: str
    result: dict[str, Any]


class StartCampaignResponse(BaseModel):
    status: str
    message: str
    years: list[int]


class ScrapeStatusResponse(BaseModel):
    sessions: list[dict[str, Any]]
    campaign: dict[str, Any]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_state(request: Request, name: str) -> Any:
    """Retrieve a component from app state, or raise 503."""
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialised.")
    return component


def validate_year(year: int, config: ScraperConfig) -> None:
    first, last = min(config.years), max(config.years)
    if not first <= year <= last:
        raise InvalidYearError(year, first, last)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/year/{year}", response_model=ScrapeYearResponse)
async def scrape_year(
    request: Request,
    year: int,
    persist: bool = Query(default=True, description="Store the records; false returns them directly"),
    force: bool = Query(default=False, description="Re-scrape even if the year is still fresh"),
) -> ScrapeYearResponse:
    """Scrape one edition year now.

    A year whose session is completed and still fresh is reported as
    ``already_scraped`` without a fetch unless *force* is set.

    With ``persist=false`` the records are collected and returned
    without touching sessions or the store.
    """
    config: ScraperConfig = _get_state(request, "scraper_config")
    orchestrator = _get_state(request, "orchestrator")

    try:
        validate_year(year, config)
    except InvalidYearError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info("api.scrape.year_triggered", year=year, persist=persist, force=force)

    if not persist:
        try:
            problems = await orchestrator.collect_problems(year)
        except Exception as exc:
            logger.error("api.scrape.collect_failed", year=year, exc_info=True)
            raise HTTPException(status_code=500, detail=f"Scrape failed: {exc}") from exc
        return ScrapeYearResponse(
            status="completed",
            message=f"Collected {len(problems)} problem statements for {edition_label(year)}.",
            result={
                "year": year,
                "status": "completed",
                "count": len(problems),
                "problems": [p.model_dump(mode="json") for p in problems],
            },
        )

    try:
        outcome = await orchestrator.scrape_year(year, force=force)
    except ScrapeInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("api.scrape.year_failed", year=year, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Scrape failed: {exc}") from exc

    return ScrapeYearResponse(
        status=str(outcome.status),
        message=(
            f"{edition_label(year)} is already up to date ({outcome.count} problem statements)."
            if outcome.status == OutcomeStatus.ALREADY_SCRAPED
            else f"Scraped {outcome.count} problem statements for {edition_label(year)}."
        ),
        result=outcome.to_dict(),
    )


@router.post("/start", response_model=StartCampaignResponse, status_code=202)
async def start_campaign(
    request: Request,
    body: StartCampaignRequest | None = None,
) -> StartCampaignResponse:
    """Start a background campaign over the requested (or configured) years."""
    config: ScraperConfig = _get_state(request, "scraper_config")
    task = _get_state(request, "campaign_task")
    body = body or StartCampaignRequest()

    years = sorted(set(body.years), reverse=True) if body.years else list(config.years)
    try:
        for year in years:
            validate_year(year, config)
    except InvalidYearError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not task.start(years, force=body.force):
        raise HTTPException(status_code=409, detail="A scraping campaign is already running.")

    logger.info("api.scrape.campaign_started", years=years, force=body.force)
    return StartCampaignResponse(
        status="started",
        message=f"Scraping {len(years)} year(s) in the background.",
        years=years,
    )


@router.get("/status", response_model=ScrapeStatusResponse)
async def scrape_status(request: Request) -> ScrapeStatusResponse:
    """Per-year sessions (newest first) and the background campaign state."""
    store = _get_state(request, "store")
    task = getattr(request.app.state, "campaign_task", None)

    sessions = await store.list_sessions()
    campaign = task.status() if task is not None else {"running": False, "last_results": []}

    return ScrapeStatusResponse(
        sessions=[s.model_dump(mode="json") for s in sessions],
        campaign=campaign,
    )

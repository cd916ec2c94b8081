"""SIH Scope FastAPI application entry point.

Creates the FastAPI app, includes routers, and manages the lifecycle of
the scraping pipeline (store, fetcher, orchestrator, campaign runner).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, TextIO

import structlog
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from config.settings import Settings, settings
from sihscope.api.router import api_router
from sihscope.services.scraping.campaign import CampaignRunner, CampaignTask
from sihscope.services.scraping.config import ScraperConfig
from sihscope.services.scraping.fetcher import ListingFetcher
from sihscope.services.scraping.orchestrator import YearScrapeOrchestrator
from sihscope.services.storage import ProblemStore, build_store

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

__version__ = "0.1.0"


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging(config: Settings = settings, stream: TextIO | None = None) -> None:
    """Set up structlog with JSON or console rendering based on settings.

    Log lines go to *stream*, or stdout when it is ``None``.
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(config.log_level),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Pipeline wiring
# ---------------------------------------------------------------------------


@dataclass
class Pipeline:
    """The scraping components shared by the API and the CLI."""

    config: ScraperConfig
    store: ProblemStore
    fetcher: ListingFetcher
    orchestrator: YearScrapeOrchestrator
    runner: CampaignRunner

    async def close(self) -> None:
        await self.fetcher.close()
        await self.store.flush()


def build_pipeline(config: Settings = settings) -> Pipeline:
    scraper_config = ScraperConfig.from_settings(config)
    store = build_store(config)
    fetcher = ListingFetcher(scraper_config)
    orchestrator = YearScrapeOrchestrator(fetcher, store, scraper_config)
    runner = CampaignRunner(orchestrator, scraper_config)
    return Pipeline(
        config=scraper_config,
        store=store,
        fetcher=fetcher,
        orchestrator=orchestrator,
        runner=runner,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the scraping pipeline.

    On startup:
      1. Build the scraper config and the configured store backend
      2. Create the listing fetcher, orchestrator and campaign runner
      3. Store everything on ``app.state``

    On shutdown:
      - Cancel a running campaign.
      - Close the fetcher's HTTP client.
    """
    _configure_logging()
    logger.info(
        "app.startup",
        env=settings.env,
        storage=settings.storage_backend,
        profile=settings.scrape_profile,
        years=f"{settings.year_start}-{settings.year_end}",
    )

    app.state.start_time = time.time()

    pipeline = build_pipeline()
    campaign_task = CampaignTask(pipeline.runner)

    app.state.scraper_config = pipeline.config
    app.state.store = pipeline.store
    app.state.fetcher = pipeline.fetcher
    app.state.orchestrator = pipeline.orchestrator
    app.state.campaign_runner = pipeline.runner
    app.state.campaign_task = campaign_task
    logger.info("app.startup_complete")

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")
    await campaign_task.stop()
    await pipeline.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SIH Scope API",
    description=(
        "Collects Smart India Hackathon problem statements from sih.gov.in, "
        "normalizes them into structured records and serves them for analysis."
    ),
    version=__version__,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.include_router(api_router)


@app.get("/api")
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "SIH Scope API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/v1/health",
        "endpoints": {
            "scrape_year": "/api/v1/scrape/year/{year}",
            "scrape_start": "/api/v1/scrape/start",
            "scrape_status": "/api/v1/scrape/status",
            "problems": "/api/v1/problems",
            "stats": "/api/v1/stats",
        },
    }

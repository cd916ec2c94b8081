"""SIH problem statement scraping pipeline.

Fetches the per-year listing pages from sih.gov.in, extracts candidate
elements through a tier cascade, normalizes them into
:class:`ProblemStatement` records and falls back to synthetic records
when a page yields too little.

Public API::

    from sihscope.services.scraping import (
        ListingFetcher,
        YearScrapeOrchestrator,
        CampaignRunner,
        CampaignTask,
    )
"""

from __future__ import annotations

from sihscope.services.scraping.campaign import CampaignRunner, CampaignTask, summarize
from sihscope.services.scraping.config import (
    FULL_PROFILE,
    LIGHT_PROFILE,
    ScrapeProfile,
    ScraperConfig,
)
from sihscope.services.scraping.errors import (
    FetchError,
    InvalidYearError,
    ScrapeError,
    ScrapeInProgressError,
)
from sihscope.services.scraping.fetcher import ListingFetcher
from sihscope.services.scraping.orchestrator import YearScrapeOrchestrator

__all__ = [
    "CampaignRunner",
    "CampaignTask",
    "FULL_PROFILE",
    "FetchError",
    "InvalidYearError",
    "LIGHT_PROFILE",
    "ListingFetcher",
    "ScrapeError",
    "ScrapeInProgressError",
    "ScrapeProfile",
    "ScraperConfig",
    "YearScrapeOrchestrator",
    "summarize",
]

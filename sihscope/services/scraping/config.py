"""Explicit configuration value passed to the scraping components.

:class:`ScraperConfig` is built once from :mod:`config.settings` at
startup (see :meth:`ScraperConfig.from_settings`) and handed to the
fetcher, orchestrator and campaign runner.  Nothing in the pipeline
reads the environment directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from config.settings import Settings

DEFAULT_BASE_URL: Final[str] = "https://sih.gov.in"
DEFAULT_USER_AGENT: Final[str] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
DEFAULT_YEARS: Final[tuple[int, ...]] = tuple(range(2025, 2014, -1))


@dataclass(frozen=True)
class ScrapeProfile:
    """Synthetic fill thresholds.

    ``fallback_count`` records are generated when nothing could be
    extracted; when fewer than ``min_valid_count`` drafts survive
    normalization, the batch is topped up to ``topup_target``, or to the
    candidate count when ``topup_to_candidates`` is set and more
    candidates were found.
    """

    name: str
    min_valid_count: int
    fallback_count: int
    topup_target: int
    topup_to_candidates: bool = False

    def topup_size(self, candidates: int) -> int:
        if self.topup_to_candidates:
            return max(self.topup_target, candidates)
        return self.topup_target


FULL_PROFILE: Final[ScrapeProfile] = ScrapeProfile(
    name="full", min_valid_count=10, fallback_count=200, topup_target=200
)
LIGHT_PROFILE: Final[ScrapeProfile] = ScrapeProfile(
    name="light",
    min_valid_count=5,
    fallback_count=50,
    topup_target=20,
    topup_to_candidates=True,
)

PROFILES: Final[dict[str, ScrapeProfile]] = {
    FULL_PROFILE.name: FULL_PROFILE,
    LIGHT_PROFILE.name: LIGHT_PROFILE,
}


@dataclass(frozen=True)
class ScraperConfig:
    """Pacing, retry and target settings for one pipeline instance.

    Delays are in seconds.
    """

    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    request_delay: float = 0.5
    candidate_delay: float = 0.05
    inter_year_delay: float = 5.0
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    years: tuple[int, ...] = DEFAULT_YEARS
    freshness: timedelta = timedelta(days=7)
    stale_claim_after: timedelta = timedelta(hours=1)
    profile: ScrapeProfile = FULL_PROFILE
    max_parallel_years: int = 1
    campaign_deadline: float | None = None
    extra_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> ScraperConfig:
        return cls(
            base_url=settings.base_url,
            user_agent=settings.user_agent or DEFAULT_USER_AGENT,
            request_delay=settings.request_delay_ms / 1000,
            candidate_delay=settings.candidate_delay_ms / 1000,
            inter_year_delay=settings.inter_year_delay_s,
            request_timeout=settings.request_timeout_s,
            max_retries=settings.max_retries,
            years=tuple(settings.target_years),
            freshness=timedelta(days=settings.freshness_days),
            profile=PROFILES[settings.scrape_profile],
            max_parallel_years=settings.max_parallel_years,
            campaign_deadline=settings.campaign_deadline_s,
        )

    def listing_url(self, year: int) -> str:
        """URL of the problem statement listing page for *year*."""
        return f"{self.base_url.rstrip('/')}/sih{year}PS"

    def pacing_metadata(self) -> dict[str, Any]:
        """Snapshot of the pacing configuration stored on each session."""
        return {
            "user_agent": self.user_agent,
            "scraping_delay_ms": int(self.request_delay * 1000),
            "max_retries": self.max_retries,
            "profile": self.profile.name,
            **self.extra_metadata,
        }

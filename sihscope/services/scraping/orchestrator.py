"""Per-year scrape workflow.

Pipeline stages for one edition year
------------------------------------
1. **Claim** -- atomically move the year's session to ``in_progress``
   (or report ``already_scraped`` / raise :class:`ScrapeInProgressError`).
2. **Fetch** -- download ``<base_url>/sih<YEAR>PS``.
3. **Extract** -- run the tier cascade over the HTML.
4. **Normalize** -- convert each candidate into a draft, one at a time.
5. **Fill** -- add synthetic records when the page yielded too little.
6. **Persist** -- upsert every draft by ``(title, year)``, then flush
   the store once for the batch.
7. **Finish** -- mark the session completed, or failed on error.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import structlog

from sihscope.models.problem import ProblemStatement
from sihscope.models.session import OutcomeStatus, SessionStatus, YearOutcome
from sihscope.services.scraping.config import ScraperConfig
from sihscope.services.scraping.errors import FetchError, ScrapeInProgressError
from sihscope.services.scraping.extraction import Candidate, extract_candidates
from sihscope.services.scraping.fetcher import ListingFetcher
from sihscope.services.scraping.normalizer import normalize_candidate
from sihscope.services.scraping.synthetic import fill_synthetic
from sihscope.services.storage.base import ProblemStore

logger = structlog.get_logger(__name__)


class YearScrapeOrchestrator:
    """Runs the scrape workflow for single edition years.

    Parameters
    ----------
    fetcher:
        Listing page client.
    store:
        Persistence backend for problems and sessions.
    config:
        Pacing, freshness and synthetic fill settings.
    """

    def __init__(
        self,
        fetcher: ListingFetcher,
        store: ProblemStore,
        config: ScraperConfig,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._config = config

    @property
    def config(self) -> ScraperConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def scrape_year(self, year: int, *, force: bool = False) -> YearOutcome:
        """Scrape, normalize and persist one year's problem statements.

        Parameters
        ----------
        year:
            Edition year to scrape.
        force:
            Re-scrape even if the session is completed and still fresh.
            Does not override a live claim held by another scrape.

        Returns
        -------
        YearOutcome
            ``completed`` with the number of drafts, or ``already_scraped``
            with the stored total.

        Raises
        ------
        ScrapeInProgressError
            If another scrape currently holds this year.
        """
        url = self._config.listing_url(year)
        try:
            session, claimed = await self._store.claim_session(
                year,
                now=datetime.now(UTC),
                freshness=self._config.freshness,
                stale_after=self._config.stale_claim_after,
                force=force,
                url=url,
                metadata=self._config.pacing_metadata(),
            )
        except Exception:
            logger.error("scrape.claim_failed", year=year, exc_info=True)
            raise

        if not claimed:
            if session.status == SessionStatus.IN_PROGRESS:
                logger.info("scrape.year_in_progress", year=year)
                raise ScrapeInProgressError(year)
            logger.info("scrape.year_fresh", year=year, total=session.total_problems)
            return YearOutcome(
                year=year,
                status=OutcomeStatus.ALREADY_SCRAPED,
                count=session.total_problems,
            )

        logger.info("scrape.year_start", year=year, url=url, force=force)
        try:
            drafts = await self.collect_problems(year)
            saved = await self._persist(drafts)
            await self._store.flush()
            session.mark_completed(total_problems=len(drafts), success_count=saved)
            await self._store.save_session(session)
        except (Exception, asyncio.CancelledError) as exc:
            message = str(exc) or type(exc).__name__
            logger.error("scrape.year_failed", year=year, error=message, exc_info=True)
            session.mark_failed(message, url=url)
            await self._store.save_session(session)
            raise

        logger.info("scrape.year_completed", year=year, total=len(drafts), saved=saved)
        return YearOutcome(
            year=year,
            status=OutcomeStatus.COMPLETED,
            count=len(drafts),
            problems=drafts,
        )

    async def collect_problems(self, year: int) -> list[ProblemStatement]:
        """Fetch, extract and normalize *year* without touching the store.

        Falls back to synthetic records when the fetch fails or nothing
        could be extracted, and tops up batches that are too small.
        """
        profile = self._config.profile
        url = self._config.listing_url(year)

        try:
            html = await self._fetcher.fetch(url)
        except FetchError as exc:
            logger.warning(
                "scrape.fetch_failed",
                year=year,
                url=url,
                reason=exc.reason,
                fallback_count=profile.fallback_count,
            )
            return fill_synthetic(year, 0, profile.fallback_count)

        extraction = extract_candidates(html, year)
        if extraction.failed:
            logger.warning(
                "scrape.extraction_empty",
                year=year,
                fallback_count=profile.fallback_count,
            )
            return fill_synthetic(year, 0, profile.fallback_count)

        drafts = await self._normalize_all(extraction.candidates, year)

        if len(drafts) < profile.min_valid_count:
            missing = max(profile.topup_size(len(extraction.candidates)) - len(drafts), 0)
            logger.info(
                "scrape.synthetic_topup",
                year=year,
                valid=len(drafts),
                added=missing,
            )
            drafts.extend(fill_synthetic(year, len(drafts), missing))

        return drafts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _normalize_all(self, candidates: list[Candidate], year: int) -> list[ProblemStatement]:
        drafts: list[ProblemStatement] = []
        for index, candidate in enumerate(candidates, start=1):
            if index > 1 and self._config.candidate_delay > 0:
                await asyncio.sleep(self._config.candidate_delay)
            try:
                draft = normalize_candidate(candidate, year, index)
            except Exception:
                logger.warning("scrape.candidate_failed", year=year, index=index, exc_info=True)
                continue
            if draft is not None:
                drafts.append(draft)

        logger.info(
            "scrape.normalized",
            year=year,
            candidates=len(candidates),
            valid=len(drafts),
        )
        return drafts

    async def _persist(self, drafts: list[ProblemStatement]) -> int:
        saved = 0
        created = 0
        for draft in drafts:
            try:
                _, was_created = await self._store.upsert(draft)
            except Exception:
                logger.warning(
                    "scrape.persist_failed",
                    year=draft.year,
                    title=draft.title[:80],
                    exc_info=True,
                )
                continue
            saved += 1
            created += int(was_created)

        logger.info(
            "scrape.persisted",
            saved=saved,
            created=created,
            updated=saved - created,
            skipped=len(drafts) - saved,
        )
        return saved

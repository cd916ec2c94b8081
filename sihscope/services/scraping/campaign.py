"""Multi-year scrape campaigns.

A campaign runs the :class:`YearScrapeOrchestrator` over a set of
edition years, newest first.  Years are isolated from each other: a
failure is recorded as a ``failed`` outcome and the campaign moves on.

Pacing
------
- Sequential mode (default): ``inter_year_delay`` seconds between
  consecutive years, never after the last one.
- Parallel mode (``max_parallel_years > 1``): at most that many years in
  flight, and successive year starts are still spaced by at least
  ``request_delay`` seconds.

:class:`CampaignTask` wraps a campaign in a cancellable background
:class:`asyncio.Task` for the REST layer.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime
from typing import Any

import structlog

from sihscope.models.session import OutcomeStatus, YearOutcome
from sihscope.services.scraping.config import ScraperConfig
from sihscope.services.scraping.orchestrator import YearScrapeOrchestrator

logger = structlog.get_logger(__name__)

DEADLINE_EXCEEDED = "campaign deadline exceeded"

SleepFunc = Callable[[float], Awaitable[Any]]


def order_years(years: Iterable[int]) -> list[int]:
    """De-duplicate *years* and order them newest first."""
    return sorted(set(years), reverse=True)


def summarize(outcomes: list[YearOutcome]) -> dict[str, Any]:
    """Aggregate counts over a campaign's outcomes."""
    by_status = {status: 0 for status in OutcomeStatus}
    for outcome in outcomes:
        by_status[outcome.status] += 1
    return {
        "total_years": len(outcomes),
        "completed": by_status[OutcomeStatus.COMPLETED],
        "already_scraped": by_status[OutcomeStatus.ALREADY_SCRAPED],
        "failed": by_status[OutcomeStatus.FAILED],
        "total_problems": sum(o.count for o in outcomes if o.status != OutcomeStatus.FAILED),
        "results": [o.to_dict() for o in outcomes],
    }


# ---------------------------------------------------------------------------
# CampaignRunner
# ---------------------------------------------------------------------------


class CampaignRunner:
    """Sequences year scrapes with pacing, isolation and an optional deadline.

    Parameters
    ----------
    orchestrator:
        Per-year workflow.
    config:
        Supplies the default years, delays, parallelism and deadline.
    sleep:
        Awaitable used for every pacing delay.  Tests substitute a
        recorder.
    """

    def __init__(
        self,
        orchestrator: YearScrapeOrchestrator,
        config: ScraperConfig,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config
        self._sleep = sleep
        self._start_lock = asyncio.Lock()
        self._last_start: float | None = None

    async def run(
        self,
        years: Iterable[int] | None = None,
        *,
        deadline: float | None = None,
        force: bool = False,
    ) -> list[YearOutcome]:
        """Scrape every year in *years* (default: the configured range).

        Returns one outcome per distinct year, newest first.  Years that
        had not finished when *deadline* seconds elapsed are reported as
        failed with ``"campaign deadline exceeded"``.
        """
        targets = order_years(years if years is not None else self._config.years)
        deadline = deadline if deadline is not None else self._config.campaign_deadline
        results: dict[int, YearOutcome] = {}

        logger.info(
            "campaign.started",
            years=targets,
            parallel=self._config.max_parallel_years,
            deadline=deadline,
        )
        started = time.monotonic()

        try:
            async with asyncio.timeout(deadline):
                if self._config.max_parallel_years > 1:
                    await self._run_parallel(targets, results, force)
                else:
                    await self._run_sequential(targets, results, force)
        except TimeoutError:
            logger.warning(
                "campaign.deadline_exceeded",
                deadline=deadline,
                finished=sorted(results, reverse=True),
            )

        outcomes = [
            results.get(year)
            or YearOutcome(year=year, status=OutcomeStatus.FAILED, error=DEADLINE_EXCEEDED)
            for year in targets
        ]
        summary = summarize(outcomes)
        logger.info(
            "campaign.finished",
            completed=summary["completed"],
            already_scraped=summary["already_scraped"],
            failed=summary["failed"],
            duration_s=round(time.monotonic() - started, 2),
        )
        return outcomes

    # ------------------------------------------------------------------
    # Execution modes
    # ------------------------------------------------------------------

    async def _run_sequential(
        self,
        years: list[int],
        results: dict[int, YearOutcome],
        force: bool,
    ) -> None:
        for position, year in enumerate(years):
            if position > 0 and self._config.inter_year_delay > 0:
                await self._sleep(self._config.inter_year_delay)
            results[year] = await self._run_one(year, force)

    async def _run_parallel(
        self,
        years: list[int],
        results: dict[int, YearOutcome],
        force: bool,
    ) -> None:
        semaphore = asyncio.Semaphore(self._config.max_parallel_years)

        async def worker(year: int) -> None:
            async with semaphore:
                await self._pace_start()
                results[year] = await self._run_one(year, force)

        async with asyncio.TaskGroup() as group:
            for year in years:
                group.create_task(worker(year))

    async def _pace_start(self) -> None:
        async with self._start_lock:
            if self._last_start is not None:
                elapsed = time.monotonic() - self._last_start
                if elapsed < self._config.request_delay:
                    await self._sleep(self._config.request_delay - elapsed)
            self._last_start = time.monotonic()

    async def _run_one(self, year: int, force: bool) -> YearOutcome:
        try:
            outcome = await self._orchestrator.scrape_year(year, force=force)
        except Exception as exc:
            logger.error("campaign.year_failed", year=year, error=str(exc), exc_info=True)
            return YearOutcome(
                year=year,
                status=OutcomeStatus.FAILED,
                error=str(exc) or type(exc).__name__,
            )
        logger.info("campaign.year_done", year=year, status=str(outcome.status), count=outcome.count)
        return outcome.model_copy(update={"problems": []})


# ---------------------------------------------------------------------------
# CampaignTask
# ---------------------------------------------------------------------------


class CampaignTask:
    """Runs at most one campaign at a time in the background.

    Parameters
    ----------
    runner:
        The :class:`CampaignRunner` to execute.
    """

    def __init__(self, runner: CampaignRunner) -> None:
        self._runner = runner
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._last_results: list[YearOutcome] = []
        self._last_error: str | None = None
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_results(self) -> list[YearOutcome]:
        return list(self._last_results)

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def finished_at(self) -> datetime | None:
        return self._finished_at

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "finished_at": self._finished_at.isoformat() if self._finished_at else None,
            "last_error": self._last_error,
            "last_results": [o.to_dict() for o in self._last_results],
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, years: Iterable[int] | None = None, *, force: bool = False) -> bool:
        """Launch a campaign; returns ``False`` if one is already running."""
        if self.is_running:
            logger.info("campaign.already_running")
            return False

        self._started_at = datetime.now(UTC)
        self._finished_at = None
        self._last_error = None
        self._task = asyncio.create_task(self._run(None if years is None else list(years), force))
        return True

    async def _run(self, years: list[int] | None, force: bool) -> None:
        try:
            self._last_results = await self._runner.run(years, force=force)
        except asyncio.CancelledError:
            logger.info("campaign.cancelled")
            self._last_error = "cancelled"
            raise
        except Exception as exc:
            logger.error("campaign.task_failed", exc_info=True)
            self._last_error = str(exc) or type(exc).__name__
        finally:
            self._finished_at = datetime.now(UTC)

    async def wait(self) -> list[YearOutcome]:
        """Wait for the current campaign (if any) and return its results."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.last_results

    async def stop(self) -> None:
        """Cancel the running campaign and wait up to 10 s for it to unwind."""
        if self._task is None or self._task.done():
            return

        logger.info("campaign.stopping")
        self._task.cancel()
        try:
            await asyncio.wait_for(self._task, timeout=10.0)
        except (asyncio.CancelledError, TimeoutError):
            pass
        logger.info("campaign.stopped")

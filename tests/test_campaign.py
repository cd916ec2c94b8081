"""Tests for multi-year campaigns and the background campaign task."""

from __future__ import annotations

import asyncio

import pytest

from sihscope.models.session import OutcomeStatus, YearOutcome
from sihscope.services.scraping.campaign import (
    DEADLINE_EXCEEDED,
    CampaignRunner,
    CampaignTask,
    order_years,
    summarize,
)
from sihscope.services.scraping.config import ScraperConfig

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeOrchestrator:
    """Records calls; can fail, block or delay selected years."""

    def __init__(self, fail=(), slow=(), delay: float = 0.0):
        self.calls: list[tuple[int, bool]] = []
        self.fail = set(fail)
        self.slow = set(slow)
        self.delay = delay
        self.gate: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0

    async def scrape_year(self, year: int, *, force: bool = False) -> YearOutcome:
        self.calls.append((year, force))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if year in self.slow:
                await asyncio.sleep(10)
            if self.delay:
                await asyncio.sleep(self.delay)
            if year in self.fail:
                raise RuntimeError(f"boom {year}")
            return YearOutcome(year=year, status=OutcomeStatus.COMPLETED, count=year - 2000)
        finally:
            self.active -= 1


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _runner(orchestrator=None, **overrides):
    defaults = {"inter_year_delay": 5.0, "request_delay": 0.5, "years": (2025, 2024, 2023)}
    defaults.update(overrides)
    orchestrator = orchestrator or FakeOrchestrator()
    sleep = SleepRecorder()
    return CampaignRunner(orchestrator, ScraperConfig(**defaults), sleep=sleep), orchestrator, sleep


# ---------------------------------------------------------------------------
# CampaignRunner
# ---------------------------------------------------------------------------


class TestCampaignRunner:
    def test_order_years(self):
        assert order_years([2023, 2025, 2024, 2025]) == [2025, 2024, 2023]

    @pytest.mark.asyncio
    async def test_default_years_newest_first(self):
        runner, orchestrator, _ = _runner()
        outcomes = await runner.run()
        assert [o.year for o in outcomes] == [2025, 2024, 2023]
        assert [year for year, _ in orchestrator.calls] == [2025, 2024, 2023]
        assert all(o.status == OutcomeStatus.COMPLETED for o in outcomes)

    @pytest.mark.asyncio
    async def test_explicit_years_deduplicated(self):
        runner, orchestrator, _ = _runner()
        outcomes = await runner.run([2016, 2018, 2016])
        assert [o.year for o in outcomes] == [2018, 2016]

    @pytest.mark.asyncio
    async def test_delay_only_between_years(self):
        runner, _, sleep = _runner()
        await runner.run()
        assert sleep.delays == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_single_year_no_delay(self):
        runner, _, sleep = _runner()
        await runner.run([2024])
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_failed_year_does_not_stop_later_years(self):
        runner, orchestrator, _ = _runner(FakeOrchestrator(fail={2024}))
        outcomes = await runner.run()
        assert [o.status for o in outcomes] == [
            OutcomeStatus.COMPLETED,
            OutcomeStatus.FAILED,
            OutcomeStatus.COMPLETED,
        ]
        assert outcomes[1].error == "boom 2024"
        assert len(orchestrator.calls) == 3

    @pytest.mark.asyncio
    async def test_force_passed_through(self):
        runner, orchestrator, _ = _runner()
        await runner.run([2024], force=True)
        assert orchestrator.calls == [(2024, True)]

    @pytest.mark.asyncio
    async def test_deadline_marks_unfinished_years(self):
        runner, _, _ = _runner(FakeOrchestrator(slow={2024}))
        outcomes = await runner.run(deadline=0.05)
        assert outcomes[0].status == OutcomeStatus.COMPLETED
        assert outcomes[1].status == OutcomeStatus.FAILED
        assert outcomes[1].error == DEADLINE_EXCEEDED
        assert outcomes[2].error == DEADLINE_EXCEEDED

    @pytest.mark.asyncio
    async def test_configured_deadline(self):
        runner, _, _ = _runner(FakeOrchestrator(slow={2025}), campaign_deadline=0.05)
        outcomes = await runner.run()
        assert all(o.error == DEADLINE_EXCEEDED for o in outcomes)

    @pytest.mark.asyncio
    async def test_bounded_parallelism(self):
        orchestrator = FakeOrchestrator(delay=0.01)
        runner, _, sleep = _runner(orchestrator, max_parallel_years=2, years=(2025, 2024, 2023, 2022))
        outcomes = await runner.run()
        assert [o.year for o in outcomes] == [2025, 2024, 2023, 2022]
        assert all(o.status == OutcomeStatus.COMPLETED for o in outcomes)
        assert orchestrator.max_active <= 2
        # Every start after the first waits for the pacing floor.
        assert len(sleep.delays) == 3
        assert all(0 < d <= 0.5 for d in sleep.delays)

    @pytest.mark.asyncio
    async def test_outcomes_drop_problem_payloads(self):
        runner, _, _ = _runner()
        outcomes = await runner.run([2024])
        assert outcomes[0].problems == []


class TestSummarize:
    def test_counts(self):
        outcomes = [
            YearOutcome(year=2025, status=OutcomeStatus.COMPLETED, count=200),
            YearOutcome(year=2024, status=OutcomeStatus.ALREADY_SCRAPED, count=150),
            YearOutcome(year=2023, status=OutcomeStatus.FAILED, error="boom"),
        ]
        summary = summarize(outcomes)
        assert summary["total_years"] == 3
        assert summary["completed"] == 1
        assert summary["already_scraped"] == 1
        assert summary["failed"] == 1
        assert summary["total_problems"] == 350
        assert summary["results"][2] == {"year": 2023, "status": "failed", "count": 0, "error": "boom"}


# ---------------------------------------------------------------------------
# CampaignTask
# ---------------------------------------------------------------------------


class TestCampaignTask:
    @pytest.mark.asyncio
    async def test_single_campaign_at_a_time(self):
        orchestrator = FakeOrchestrator()
        orchestrator.gate = asyncio.Event()
        runner, _, _ = _runner(orchestrator)
        task = CampaignTask(runner)

        assert task.start([2024]) is True
        await asyncio.sleep(0)
        assert task.is_running
        assert task.start([2023]) is False

        orchestrator.gate.set()
        results = await task.wait()
        assert not task.is_running
        assert [o.year for o in results] == [2024]
        assert task.started_at is not None
        assert task.finished_at is not None
        assert task.status()["running"] is False

    @pytest.mark.asyncio
    async def test_restart_after_finish(self):
        runner, _, _ = _runner()
        task = CampaignTask(runner)
        assert task.start([2024])
        await task.wait()
        assert task.start([2023])
        results = await task.wait()
        assert [o.year for o in results] == [2023]

    @pytest.mark.asyncio
    async def test_stop_cancels(self):
        orchestrator = FakeOrchestrator()
        orchestrator.gate = asyncio.Event()
        runner, _, _ = _runner(orchestrator)
        task = CampaignTask(runner)

        task.start()
        await asyncio.sleep(0)
        await task.stop()

        assert not task.is_running
        assert task.last_error == "cancelled"
        assert task.finished_at is not None

    @pytest.mark.asyncio
    async def test_stop_when_idle(self):
        runner, _, _ = _runner()
        task = CampaignTask(runner)
        await task.stop()
        assert not task.is_running

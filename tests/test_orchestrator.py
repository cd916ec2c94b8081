"""Tests for the per-year scrape workflow."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from sihscope.models.problem import ProblemStatement
from sihscope.models.session import OutcomeStatus, ScrapingSession, SessionStatus
from sihscope.services.scraping.config import FULL_PROFILE, LIGHT_PROFILE, ScraperConfig
from sihscope.services.scraping.errors import FetchError, ScrapeInProgressError
from sihscope.services.scraping.fetcher import ListingFetcher
from sihscope.services.scraping.orchestrator import YearScrapeOrchestrator
from sihscope.services.storage import InMemoryProblemStore

EMPTY_PAGE = "<html><body><p>Nothing here</p></body></html>"


def _table(rows: int) -> str:
    body = "".join(
        f"<tr><td>{i}</td><td>Entry number {i} title</td><td>Description for entry {i}</td></tr>"
        for i in range(1, rows + 1)
    )
    return f"<table><tr><th>S.No</th><th>Title</th><th>Desc</th></tr>{body}</table>"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFetcher:
    """Returns canned HTML (or raises) and records requested URLs."""

    def __init__(self, html: str = EMPTY_PAGE, error: Exception | None = None):
        self.html = html
        self.error = error
        self.urls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def fetch(self, url: str) -> str:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.html

    async def close(self) -> None:
        pass


class FlakyStore(InMemoryProblemStore):
    """Fails the first upsert, then behaves normally."""

    def __init__(self):
        super().__init__()
        self.failed = False

    async def upsert(self, problem: ProblemStatement):
        if not self.failed:
            self.failed = True
            raise OSError("disk full")
        return await super().upsert(problem)


class ClaimWriteFailingStore(InMemoryProblemStore):
    """The first session write fails, as a full disk would."""

    def __init__(self):
        super().__init__()
        self.failed = False

    def _sessions_changed(self) -> None:
        if not self.failed:
            self.failed = True
            raise OSError("disk full")


def _config(**overrides) -> ScraperConfig:
    defaults = {"request_delay": 0.0, "candidate_delay": 0.0, "profile": FULL_PROFILE}
    defaults.update(overrides)
    return ScraperConfig(**defaults)


def _orchestrator(fetcher=None, store=None, **overrides):
    fetcher = fetcher or FakeFetcher()
    store = store or InMemoryProblemStore()
    return YearScrapeOrchestrator(fetcher, store, _config(**overrides)), fetcher, store


# ---------------------------------------------------------------------------
# Fallback and top-up
# ---------------------------------------------------------------------------


class TestCollectProblems:
    @pytest.mark.asyncio
    async def test_empty_page_gives_full_fallback(self):
        orchestrator, fetcher, store = _orchestrator()
        problems = await orchestrator.collect_problems(2024)
        assert len(problems) == 200
        assert len({p.problem_id for p in problems}) == 200
        assert all(p.title and p.description for p in problems)
        assert fetcher.urls == ["https://sih.gov.in/sih2024PS"]
        assert await store.find_session(2024) is None

    @pytest.mark.asyncio
    async def test_fetch_failure_gives_fallback(self):
        fetcher = FakeFetcher(error=FetchError("https://sih.gov.in/sih2024PS", "timeout"))
        orchestrator, _, _ = _orchestrator(fetcher)
        assert len(await orchestrator.collect_problems(2024)) == 200

    @pytest.mark.asyncio
    async def test_light_profile_fallback(self):
        orchestrator, _, _ = _orchestrator(profile=LIGHT_PROFILE)
        assert len(await orchestrator.collect_problems(2024)) == 50

    @pytest.mark.asyncio
    async def test_enough_rows_no_topup(self):
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(12)))
        problems = await orchestrator.collect_problems(2024)
        assert len(problems) == 12
        assert problems[0].title == "Entry number 1 title"

    @pytest.mark.asyncio
    async def test_few_rows_topped_up(self):
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(2)))
        problems = await orchestrator.collect_problems(2024)
        assert len(problems) == 200
        assert [p.title for p in problems[:2]] == ["Entry number 1 title", "Entry number 2 title"]
        assert problems[2].title.endswith("#3")

    @pytest.mark.asyncio
    async def test_light_profile_no_valid_rows_topped_up(self, monkeypatch):
        import sihscope.services.scraping.orchestrator as module

        monkeypatch.setattr(module, "normalize_candidate", lambda candidate, year, index, now=None: None)
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(12)), profile=LIGHT_PROFILE)
        problems = await orchestrator.collect_problems(2024)
        assert len(problems) == 20
        assert problems[0].title.endswith("#1")

    @pytest.mark.asyncio
    async def test_light_profile_topup_covers_every_candidate(self, monkeypatch):
        import sihscope.services.scraping.orchestrator as module

        monkeypatch.setattr(module, "normalize_candidate", lambda candidate, year, index, now=None: None)
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(30)), profile=LIGHT_PROFILE)
        problems = await orchestrator.collect_problems(2024)
        assert len(problems) == 30
        assert len({p.title for p in problems}) == 30

    @pytest.mark.asyncio
    async def test_full_profile_topup_is_flat(self):
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(2)))
        assert len(await orchestrator.collect_problems(2024)) == 200

    @pytest.mark.asyncio
    async def test_redirect_loop_falls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": str(request.url)})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        fetcher = ListingFetcher(_config(retry_backoff=0.0), client=client)
        orchestrator, _, store = _orchestrator(fetcher)
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.COMPLETED
        assert outcome.count == 200
        assert (await store.find_session(2024)).status == SessionStatus.COMPLETED
        await client.aclose()

    @pytest.mark.asyncio
    async def test_undecodable_body_falls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"plain text")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = ListingFetcher(_config(retry_backoff=0.0), client=client)
        orchestrator, _, _ = _orchestrator(fetcher)
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.COMPLETED
        assert outcome.count == 200
        await client.aclose()

    @pytest.mark.asyncio
    async def test_light_profile_topup(self):
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(2)), profile=LIGHT_PROFILE)
        assert len(await orchestrator.collect_problems(2024)) == 20

    @pytest.mark.asyncio
    async def test_failing_candidate_is_skipped(self, monkeypatch):
        import sihscope.services.scraping.orchestrator as module

        real = module.normalize_candidate

        def flaky(candidate, year, index, now=None):
            if index == 1:
                raise ValueError("malformed")
            return real(candidate, year, index, now=now)

        monkeypatch.setattr(module, "normalize_candidate", flaky)
        orchestrator, _, _ = _orchestrator(FakeFetcher(_table(12)))
        problems = await orchestrator.collect_problems(2024)
        assert len(problems) == 11


# ---------------------------------------------------------------------------
# Sessions and persistence
# ---------------------------------------------------------------------------


class TestScrapeYear:
    @pytest.mark.asyncio
    async def test_completed_outcome(self):
        orchestrator, _, store = _orchestrator()
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.COMPLETED
        assert outcome.count == 200
        assert await store.count_by_year(2024) == 200

        session = await store.find_session(2024)
        assert session.status == SessionStatus.COMPLETED
        assert session.total_problems == 200
        assert session.success_count == 200
        assert session.last_scraped_url == "https://sih.gov.in/sih2024PS"
        assert session.metadata["max_retries"] == 3
        assert session.metadata["profile"] == "full"

    @pytest.mark.asyncio
    async def test_fresh_session_skips_fetch(self):
        orchestrator, fetcher, _ = _orchestrator()
        await orchestrator.scrape_year(2024)
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.ALREADY_SCRAPED
        assert outcome.count == 200
        assert len(fetcher.urls) == 1

    @pytest.mark.asyncio
    async def test_stale_session_rescraped(self):
        store = InMemoryProblemStore()
        session = ScrapingSession.for_year(2024)
        session.mark_completed(5, 5, now=datetime.now(UTC) - timedelta(days=8))
        await store.save_session(session)

        orchestrator, fetcher, _ = _orchestrator(store=store)
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.COMPLETED
        assert len(fetcher.urls) == 1

    @pytest.mark.asyncio
    async def test_force_rescrape_is_idempotent(self):
        orchestrator, fetcher, store = _orchestrator(FakeFetcher(_table(12)))
        await orchestrator.scrape_year(2024)
        before = await store.find_by_natural_key("Entry number 1 title", 2024)

        outcome = await orchestrator.scrape_year(2024, force=True)
        after = await store.find_by_natural_key("Entry number 1 title", 2024)

        assert outcome.status == OutcomeStatus.COMPLETED
        assert len(fetcher.urls) == 2
        assert await store.count_by_year(2024) == 12
        assert after.problem_id == before.problem_id
        assert after.last_updated >= before.last_updated

    @pytest.mark.asyncio
    async def test_in_progress_claim_raises(self):
        store = InMemoryProblemStore()
        await store.claim_session(
            2024,
            now=datetime.now(UTC),
            freshness=timedelta(days=7),
            stale_after=timedelta(hours=1),
        )
        orchestrator, fetcher, _ = _orchestrator(store=store)
        with pytest.raises(ScrapeInProgressError):
            await orchestrator.scrape_year(2024, force=True)
        assert fetcher.urls == []

    @pytest.mark.asyncio
    async def test_concurrent_scrapes_single_winner(self):
        fetcher = FakeFetcher()
        fetcher.gate = asyncio.Event()
        orchestrator, _, store = _orchestrator(fetcher)

        async def release():
            await asyncio.sleep(0.01)
            fetcher.gate.set()

        first, second, _ = await asyncio.gather(
            orchestrator.scrape_year(2024),
            orchestrator.scrape_year(2024),
            release(),
            return_exceptions=True,
        )
        results = [first, second]
        assert sum(isinstance(r, ScrapeInProgressError) for r in results) == 1
        assert len(fetcher.urls) == 1
        assert await store.count_by_year(2024) == 200

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_session_failed(self):
        orchestrator, _, store = _orchestrator(FakeFetcher(error=RuntimeError("boom")))
        with pytest.raises(RuntimeError, match="boom"):
            await orchestrator.scrape_year(2024)

        session = await store.find_session(2024)
        assert session.status == SessionStatus.FAILED
        assert session.error_count == 1
        assert session.errors[0].message == "boom"
        assert session.errors[0].url == "https://sih.gov.in/sih2024PS"

    @pytest.mark.asyncio
    async def test_failed_session_is_retried(self):
        fetcher = FakeFetcher(error=RuntimeError("boom"))
        orchestrator, _, _ = _orchestrator(fetcher)
        with pytest.raises(RuntimeError):
            await orchestrator.scrape_year(2024)

        fetcher.error = None
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_persistence_failure_skips_record(self):
        orchestrator, _, store = _orchestrator(store=FlakyStore())
        outcome = await orchestrator.scrape_year(2024)
        assert outcome.count == 200
        session = await store.find_session(2024)
        assert session.total_problems == 200
        assert session.success_count == 199
        assert await store.count_by_year(2024) == 199

    @pytest.mark.asyncio
    async def test_failed_claim_write_does_not_block_retry(self):
        orchestrator, fetcher, store = _orchestrator(store=ClaimWriteFailingStore())
        with pytest.raises(OSError):
            await orchestrator.scrape_year(2024)
        assert fetcher.urls == []
        assert await store.find_session(2024) is None

        outcome = await orchestrator.scrape_year(2024)
        assert outcome.status == OutcomeStatus.COMPLETED
        assert (await store.find_session(2024)).status == SessionStatus.COMPLETED

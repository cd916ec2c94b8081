"""Process-local problem store.

Every mutation happens under a single :class:`asyncio.Lock`, which is
also what makes :meth:`InMemoryProblemStore.claim_session` atomic.
Records are deep-copied on the way in and out so callers can never
mutate stored state behind the lock's back.  When a persistence hook
raises, the mutation is rolled back before the error propagates.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from sihscope.models.problem import ProblemStatement
from sihscope.models.session import ScrapingSession, SessionStatus
from sihscope.services.storage.base import (
    ProblemPage,
    ProblemQuery,
    StoreStats,
    apply_query,
    compute_stats,
)

logger = structlog.get_logger(__name__)


class InMemoryProblemStore:
    """Dictionary-backed :class:`ProblemStore` with no durability."""

    def __init__(self) -> None:
        self._problems: dict[str, ProblemStatement] = {}
        self._natural_keys: dict[tuple[str, int], str] = {}
        self._sessions: dict[int, ScrapingSession] = {}
        self._lock = asyncio.Lock()

    # -- Persistence hooks (no-ops here, overridden by durable stores) --------

    def _problems_changed(self, year: int) -> None:
        pass

    def _sessions_changed(self) -> None:
        pass

    async def flush(self) -> None:
        """Write out buffered problem changes.  Nothing is buffered here."""

    # -- Problems -------------------------------------------------------------

    async def find_by_natural_key(self, title: str, year: int) -> ProblemStatement | None:
        async with self._lock:
            problem_id = self._natural_keys.get((title, year))
            if problem_id is None:
                return None
            return self._problems[problem_id].model_copy(deep=True)

    async def upsert(self, problem: ProblemStatement) -> tuple[ProblemStatement, bool]:
        """Insert *problem* or update the record sharing its ``(title, year)``.

        An update keeps the stored ``problem_id`` and ``scraped_at`` and
        refreshes ``last_updated``.  Returns ``(stored_record, created)``.
        """
        async with self._lock:
            key = problem.natural_key
            existing_id = self._natural_keys.get(key)
            existing = self._problems.pop(existing_id) if existing_id is not None else None

            if existing is None:
                stored = problem.model_copy(deep=True)
            else:
                stored = problem.model_copy(
                    deep=True,
                    update={
                        "problem_id": existing.problem_id,
                        "scraped_at": existing.scraped_at,
                        "last_updated": datetime.now(UTC),
                    },
                )

            self._problems[stored.problem_id] = stored
            self._natural_keys[key] = stored.problem_id
            try:
                self._problems_changed(stored.year)
            except Exception:
                del self._problems[stored.problem_id]
                if existing is None:
                    del self._natural_keys[key]
                else:
                    self._problems[existing.problem_id] = existing
                    self._natural_keys[key] = existing.problem_id
                raise
            return stored.model_copy(deep=True), existing is None

    async def count_by_year(self, year: int) -> int:
        async with self._lock:
            return sum(1 for p in self._problems.values() if p.year == year)

    async def get_problem(self, problem_id: str) -> ProblemStatement | None:
        async with self._lock:
            problem = self._problems.get(problem_id)
            return problem.model_copy(deep=True) if problem is not None else None

    async def list_problems(self, query: ProblemQuery) -> ProblemPage:
        async with self._lock:
            page = apply_query(self._problems.values(), query)
            page.items = [p.model_copy(deep=True) for p in page.items]
            return page

    async def stats(self) -> StoreStats:
        async with self._lock:
            return compute_stats(list(self._problems.values()), list(self._sessions.values()))

    # -- Sessions -------------------------------------------------------------

    def _commit_session(self, session: ScrapingSession) -> None:
        """Store *session* and persist it, restoring the old entry on failure."""
        previous = self._sessions.get(session.year)
        self._sessions[session.year] = session
        try:
            self._sessions_changed()
        except Exception:
            if previous is None:
                del self._sessions[session.year]
            else:
                self._sessions[session.year] = previous
            raise

    async def find_session(self, year: int) -> ScrapingSession | None:
        async with self._lock:
            session = self._sessions.get(year)
            return session.model_copy(deep=True) if session is not None else None

    async def save_session(self, session: ScrapingSession) -> None:
        async with self._lock:
            self._commit_session(session.model_copy(deep=True))

    async def list_sessions(self) -> list[ScrapingSession]:
        """All sessions, newest year first."""
        async with self._lock:
            return [
                self._sessions[year].model_copy(deep=True)
                for year in sorted(self._sessions, reverse=True)
            ]

    async def claim_session(
        self,
        year: int,
        *,
        now: datetime,
        freshness: timedelta,
        stale_after: timedelta,
        force: bool = False,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[ScrapingSession, bool]:
        """Atomically move *year*'s session to ``in_progress``.

        Returns ``(session, False)`` without changing anything when the
        session is fresh (unless *force*) or when another scrape holds a
        claim younger than *stale_after*.  Otherwise the session is
        stamped, stored and returned with ``True``.  If storing fails the
        previous session is kept and the error propagates.
        """
        async with self._lock:
            current = self._sessions.get(year)
            session = (
                current.model_copy(deep=True)
                if current is not None
                else ScrapingSession.for_year(year)
            )

            if session.status == SessionStatus.IN_PROGRESS and session.started_at is not None:
                if now - session.started_at < stale_after:
                    return session, False
                logger.warning(
                    "store.stale_claim_reclaimed",
                    year=year,
                    started_at=session.started_at.isoformat(),
                )
            elif not force and not session.needs_scraping(now, freshness):
                return session, False

            session.mark_in_progress(url=url, metadata=metadata, now=now)
            self._commit_session(session)
            return session.model_copy(deep=True), True

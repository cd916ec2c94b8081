"""Persistence interface shared by every problem store backend.

Defines the :class:`ProblemStore` protocol together with the query and
statistics helpers that backends use to answer list/stats requests.
Backends only need to keep problems and sessions; filtering, sorting,
pagination and aggregation are done here over plain sequences.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal, Protocol, runtime_checkable

from sihscope.models.problem import ProblemStatement
from sihscope.models.session import ScrapingSession, SessionStatus

SortField = Literal["year", "title", "category", "organization_name", "last_updated", "complexity"]

_YEAR_RANGE_RE = re.compile(r"^\s*(\d{4})\s*-\s*(\d{4})\s*$")
_TOP_N = 10


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def parse_year_filter(value: str | int | None) -> tuple[int, int] | None:
    """Parse ``2024`` or ``"2020-2023"`` into inclusive ``(low, high)`` bounds.

    Raises
    ------
    ValueError
        If *value* is neither a year nor a ``A-B`` range.
    """
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value, value

    match = _YEAR_RANGE_RE.match(value)
    if match:
        low, high = int(match.group(1)), int(match.group(2))
        return min(low, high), max(low, high)
    if value.strip().isdigit():
        year = int(value.strip())
        return year, year
    raise ValueError(f"Invalid year filter {value!r}; use YYYY or YYYY-YYYY")


@dataclass
class ProblemQuery:
    """Filter, sort and pagination options for :meth:`ProblemStore.list_problems`."""

    year: str | int | None = None
    category: str | None = None
    organization: str | None = None
    technology: str | None = None
    search: str | None = None
    sort_by: SortField = "year"
    descending: bool = True
    page: int = 1
    page_size: int = 20

    def __post_init__(self) -> None:
        self._year_bounds = parse_year_filter(self.year)

    def matches(self, problem: ProblemStatement) -> bool:
        if self._year_bounds is not None:
            low, high = self._year_bounds
            if not low <= problem.year <= high:
                return False
        if self.category and problem.category.lower() != self.category.lower():
            return False
        if self.organization and self.organization.lower() not in problem.organization_name.lower():
            return False
        if self.technology:
            wanted = self.technology.lower()
            if not any(wanted in tech.lower() for tech in problem.technology):
                return False
        if self.search:
            needle = self.search.lower()
            haystack = " ".join(
                [problem.title, problem.description, problem.organization_name, *problem.tags]
            ).lower()
            if needle not in haystack:
                return False
        return True


@dataclass
class ProblemPage:
    items: list[ProblemStatement]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


def _sort_value(problem: ProblemStatement, sort_by: str) -> Any:
    value = getattr(problem, sort_by)
    return 0 if value is None else value


def apply_query(problems: Iterable[ProblemStatement], query: ProblemQuery) -> ProblemPage:
    """Filter, sort and slice *problems* according to *query*."""
    matched = [p for p in problems if query.matches(p)]
    # Title is the stable secondary key for equal primary values.
    matched.sort(key=lambda p: p.title.lower())
    matched.sort(key=lambda p: _sort_value(p, query.sort_by), reverse=query.descending)

    start = (query.page - 1) * query.page_size
    return ProblemPage(
        items=matched[start : start + query.page_size],
        total=len(matched),
        page=query.page,
        page_size=query.page_size,
    )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass
class StoreStats:
    total_problems: int = 0
    total_sessions: int = 0
    completed_years: list[int] = field(default_factory=list)
    by_year: dict[int, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    by_organization: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_problems": self.total_problems,
            "total_sessions": self.total_sessions,
            "completed_years": self.completed_years,
            "by_year": {str(year): count for year, count in self.by_year.items()},
            "by_category": self.by_category,
            "by_organization": self.by_organization,
        }


def compute_stats(
    problems: Sequence[ProblemStatement],
    sessions: Sequence[ScrapingSession],
) -> StoreStats:
    """Totals per year (newest first) plus the top categories and organizations."""
    per_year = Counter(p.year for p in problems)
    return StoreStats(
        total_problems=len(problems),
        total_sessions=len(sessions),
        completed_years=sorted(
            (s.year for s in sessions if s.status == SessionStatus.COMPLETED),
            reverse=True,
        ),
        by_year={year: per_year[year] for year in sorted(per_year, reverse=True)},
        by_category=dict(Counter(p.category for p in problems).most_common(_TOP_N)),
        by_organization=dict(Counter(p.organization_name for p in problems).most_common(_TOP_N)),
    )


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ProblemStore(Protocol):
    """Async persistence interface for problems and scraping sessions."""

    async def find_by_natural_key(self, title: str, year: int) -> ProblemStatement | None: ...

    async def upsert(self, problem: ProblemStatement) -> tuple[ProblemStatement, bool]: ...

    async def flush(self) -> None: ...

    async def count_by_year(self, year: int) -> int: ...

    async def get_problem(self, problem_id: str) -> ProblemStatement | None: ...

    async def list_problems(self, query: ProblemQuery) -> ProblemPage: ...

    async def stats(self) -> StoreStats: ...

    async def find_session(self, year: int) -> ScrapingSession | None: ...

    async def save_session(self, session: ScrapingSession) -> None: ...

    async def list_sessions(self) -> list[ScrapingSession]: ...

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
    ) -> tuple[ScrapingSession, bool]: ...

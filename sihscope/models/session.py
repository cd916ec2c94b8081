"""Per-year scraping session state and campaign outcome models.

A :class:`ScrapingSession` follows a small state machine::

    pending -> in_progress -> completed
                           -> failed

A completed session stays *fresh* for a fixed window (7 days by
default); once that window elapses, or the session never completed,
the year becomes eligible for a new scrape.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from sihscope.models.problem import ProblemStatement, edition_label

DEFAULT_FRESHNESS = timedelta(days=7)


class SessionStatus(StrEnum):
    __slots__ = ()

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class OutcomeStatus(StrEnum):
    __slots__ = ()

    COMPLETED = "completed"
    ALREADY_SCRAPED = "already_scraped"
    FAILED = "failed"


class SessionError(BaseModel):
    """Structured error entry appended to a failed session."""

    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    url: str | None = None


class ScrapingSession(BaseModel):
    """Persisted scrape state for one edition year."""

    year: int
    edition: str = ""
    status: SessionStatus = SessionStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_problems: int = 0
    success_count: int = 0
    error_count: int = 0
    errors: list[SessionError] = Field(default_factory=list)
    last_scraped_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_year(cls, year: int) -> ScrapingSession:
        return cls(year=year, edition=edition_label(year))

    def needs_scraping(
        self,
        now: datetime | None = None,
        freshness: timedelta = DEFAULT_FRESHNESS,
    ) -> bool:
        """Whether this year is stale and eligible for a re-scrape."""
        if self.status != SessionStatus.COMPLETED or self.completed_at is None:
            return True
        now = now or datetime.now(UTC)
        return now - self.completed_at > freshness

    def mark_in_progress(
        self,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> None:
        self.status = SessionStatus.IN_PROGRESS
        self.started_at = now or datetime.now(UTC)
        self.last_scraped_url = url
        if metadata is not None:
            self.metadata = dict(metadata)

    def mark_completed(
        self,
        total_problems: int,
        success_count: int,
        now: datetime | None = None,
    ) -> None:
        self.status = SessionStatus.COMPLETED
        self.completed_at = now or datetime.now(UTC)
        self.total_problems = total_problems
        self.success_count = success_count

    def mark_failed(
        self,
        message: str,
        url: str | None = None,
        now: datetime | None = None,
    ) -> None:
        timestamp = now or datetime.now(UTC)
        self.status = SessionStatus.FAILED
        self.errors.append(SessionError(message=message, timestamp=timestamp, url=url))
        self.error_count += 1


class YearOutcome(BaseModel):
    """Result of scraping a single year, as reported to callers."""

    year: int
    status: OutcomeStatus
    count: int = 0
    error: str | None = None
    problems: list[ProblemStatement] = Field(default_factory=list)

    def to_dict(self, include_problems: bool = False) -> dict[str, Any]:
        """Serialise to a JSON-compatible dictionary."""
        data: dict[str, Any] = {
            "year": self.year,
            "status": str(self.status),
            "count": self.count,
        }
        if self.error is not None:
            data["error"] = self.error
        if include_problems:
            data["problems"] = [p.model_dump(mode="json") for p in self.problems]
        return data

"""Exception types raised by the scraping pipeline."""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for scraping pipeline errors."""


class FetchError(ScrapeError):
    """A listing page could not be fetched (network, timeout, non-2xx)."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {reason}")


class ScrapeInProgressError(ScrapeError):
    """Another scrape currently holds the claim on this year."""

    def __init__(self, year: int) -> None:
        self.year = year
        super().__init__(f"Scraping already in progress for year {year}")


class InvalidYearError(ScrapeError):
    """The requested year is outside the configured target range."""

    def __init__(self, year: int, first: int, last: int) -> None:
        self.year = year
        super().__init__(f"Invalid year {year}. Must be between {first} and {last}")

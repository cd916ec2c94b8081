"""Problem statement records produced by the scraping pipeline."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_ORGANIZATION_NAME = "Government of India"
DEFAULT_ORGANIZATION_TYPE = "Government"
DEFAULT_ORGANIZATION_SECTOR = "Public"


def edition_label(year: int) -> str:
    """Edition label used in tags and ids, e.g. ``SIH2024``."""
    return f"SIH{year}"


class Difficulty(StrEnum):
    __slots__ = ()

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ProblemStatement(BaseModel):
    """A single hackathon problem statement.

    ``(title, year)`` is the natural key used for upserts; ``problem_id``
    is unique per generated draft and embeds the generation timestamp.
    """

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    problem_id: str
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = "General"
    sub_category: str | None = None
    year: int
    edition: str

    organization_name: str = DEFAULT_ORGANIZATION_NAME
    organization_type: str = DEFAULT_ORGANIZATION_TYPE
    organization_sector: str = DEFAULT_ORGANIZATION_SECTOR

    technology: list[str] = Field(default_factory=list)
    domain: list[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.MEDIUM

    expected_outcome: str = ""
    constraints: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)

    tags: list[str] = Field(default_factory=list)
    complexity: int | None = Field(default=1, ge=1, le=3)
    estimated_effort: str | None = "2-3 months"

    scraped_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def natural_key(self) -> tuple[str, int]:
        return (self.title, self.year)

    def full_text(self) -> str:
        """Plain-text rendering consumed by the analysis layer."""
        return (
            f"{self.title}\n{self.description}\n"
            f"Category: {self.category}\n"
            f"Organization: {self.organization_name or 'N/A'}\n"
            f"Year: {self.year}"
        )

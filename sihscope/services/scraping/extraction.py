"""HTML extraction engine for SIH problem statement listings.

The listing pages at ``sih.gov.in/sih<YEAR>PS`` are not under our
control and their markup has changed between editions without notice.
Instead of a single selector, extraction runs a cascade of tiers, each
a pure function ``(soup, year) -> list[Tag]``.  Tiers are tried in
order and the first non-empty result wins:

1. **Tabular** -- ``<table>`` rows that look like problem statement
   entries (serial number + title + description, or labelled rows).
2. **Class hint** -- elements whose ``class`` / ``id`` mentions
   ``problem`` or ``ps``.
3. **Free text** -- block-level elements with enough text and at
   least one problem-statement keyword.

An empty result from every tier is a normal outcome ("extraction
failed"); the orchestrator falls back to synthetic records.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

import structlog
from bs4 import BeautifulSoup, Tag

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ID_LABEL: Final[str] = "Problem Statement ID"
TITLE_LABEL: Final[str] = "Problem Statement Title"
DESCRIPTION_LABEL: Final[str] = "Description"

# Literal header strings that must never become a record title.
HEADER_LABELS: Final[frozenset[str]] = frozenset({ID_LABEL, TITLE_LABEL, DESCRIPTION_LABEL})

_SERIAL_RE = re.compile(r"^\d+$")
_HEADER_MARKERS: Final[tuple[str, ...]] = ("S.No", "Sr.")
_MIN_CELL_LENGTH = 5

_CLASS_HINTS: Final[tuple[str, ...]] = ("problem", "ps")

_FREE_TEXT_TAGS: Final[frozenset[str]] = frozenset({"div", "article", "section", "tr"})
_FREE_TEXT_KEYWORDS: Final[tuple[str, ...]] = ("Problem", "Challenge", "Statement", "SIH")
_MIN_FREE_TEXT_LENGTH = 50


class Tier(StrEnum):
    __slots__ = ()

    TABULAR = "tabular"
    CLASS_HINT = "class_hint"
    FREE_TEXT = "free_text"


@dataclass(frozen=True)
class Candidate:
    """An HTML fragment hypothesised to hold one problem statement."""

    element: Tag
    tier: Tier

    @property
    def is_table_row(self) -> bool:
        return self.element.name == "tr"


@dataclass
class ExtractionResult:
    candidates: list[Candidate]
    tier: Tier | None = None

    @property
    def failed(self) -> bool:
        return not self.candidates


# ---------------------------------------------------------------------------
# Row helpers (shared with the normalizer)
# ---------------------------------------------------------------------------


def row_cells(row: Tag) -> list[str]:
    """Stripped text of every ``td`` / ``th`` cell in *row*."""
    return [cell.get_text(" ", strip=True) for cell in row.find_all(["td", "th"])]


def is_header_row(cells: list[str]) -> bool:
    """Header or separator rows: ``S.No`` / ``Sr.`` markers or empty leading cells."""
    first, second = cells[0], cells[1]
    if not first or not second:
        return True
    return any(marker in first for marker in _HEADER_MARKERS)


def is_problem_row(cells: list[str]) -> bool:
    """Whether a row with at least three cells carries a problem statement."""
    if len(cells) < 3:
        return False
    first, second, third = cells[0], cells[1], cells[2]
    if ID_LABEL in first or TITLE_LABEL in second:
        return True
    return (
        _SERIAL_RE.match(first) is not None
        and len(second) > _MIN_CELL_LENGTH
        and len(third) > _MIN_CELL_LENGTH
    )


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------


def tabular_rows(soup: BeautifulSoup, year: int) -> list[Tag]:
    rows: list[Tag] = []
    for row in soup.select("table tr"):
        cells = row_cells(row)
        if len(cells) < 3 or is_header_row(cells):
            continue
        if is_problem_row(cells):
            rows.append(row)
    return rows


def _has_class_hint(element: Tag) -> bool:
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    ident = element.get("id") or ""
    haystack = " ".join([*classes, str(ident)]).lower()
    return any(hint in haystack for hint in _CLASS_HINTS)


def class_hint_elements(soup: BeautifulSoup, year: int) -> list[Tag]:
    matches = [el for el in soup.find_all(True) if _has_class_hint(el)]
    # Keep only outermost matches so nested hints don't yield duplicates.
    selected = {id(el) for el in matches}
    return [
        el for el in matches
        if not any(id(parent) in selected for parent in el.parents)
    ]


def free_text_blocks(soup: BeautifulSoup, year: int) -> list[Tag]:
    keywords = (*_FREE_TEXT_KEYWORDS, str(year))
    blocks: list[Tag] = []
    for element in soup.find_all(True):
        classes = element.get("class") or []
        if element.name not in _FREE_TEXT_TAGS and "row" not in classes:
            continue
        text = element.get_text(" ", strip=True)
        if len(text) > _MIN_FREE_TEXT_LENGTH and any(k in text for k in keywords):
            blocks.append(element)
    return blocks


TierFunction = Callable[[BeautifulSoup, int], list[Tag]]

TIERS: Final[tuple[tuple[Tier, TierFunction], ...]] = (
    (Tier.TABULAR, tabular_rows),
    (Tier.CLASS_HINT, class_hint_elements),
    (Tier.FREE_TEXT, free_text_blocks),
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def extract_candidates(
    html: str | bytes,
    year: int,
    tiers: tuple[tuple[Tier, TierFunction], ...] = TIERS,
) -> ExtractionResult:
    """Run the tier cascade over *html* and return the first non-empty tier."""
    soup = BeautifulSoup(html, "html.parser")

    for tier, find_elements in tiers:
        elements = find_elements(soup, year)
        if elements:
            logger.info(
                "extraction.tier_matched",
                year=year,
                tier=str(tier),
                count=len(elements),
                preview=elements[0].get_text(" ", strip=True)[:200],
            )
            return ExtractionResult(
                candidates=[Candidate(element=el, tier=tier) for el in elements],
                tier=tier,
            )
        logger.debug("extraction.tier_empty", year=year, tier=str(tier))

    logger.info("extraction.no_candidates", year=year)
    return ExtractionResult(candidates=[])

"""Normalise extracted candidates into :class:`ProblemStatement` drafts.

Table rows are mapped cell by cell; any other element goes through
selector lookups with text-heuristic fallbacks.  A candidate that does
not resolve to both a title and a description is skipped (``None``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final

import structlog
from bs4 import Tag

from sihscope.models.problem import (
    DEFAULT_ORGANIZATION_NAME,
    Difficulty,
    ProblemStatement,
    edition_label,
)
from sihscope.services.scraping.extraction import (
    HEADER_LABELS,
    ID_LABEL,
    TITLE_LABEL,
    Candidate,
    is_problem_row,
    row_cells,
)

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Category inference
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryRule:
    keywords: tuple[str, ...]
    category: str


GENERAL_CATEGORY: Final[str] = "General"

# Evaluated top to bottom; the first rule with a matching keyword wins.
CATEGORY_RULES: Final[tuple[CategoryRule, ...]] = (
    CategoryRule(("health", "medical", "disease"), "Healthcare"),
    CategoryRule(("education", "learning", "student"), "Education"),
    CategoryRule(("agriculture", "farming", "crop"), "Agriculture"),
    CategoryRule(("transport", "mobility", "traffic"), "Transport"),
    CategoryRule(("energy", "power", "electricity"), "Energy"),
    CategoryRule(("environment", "climate", "pollution"), "Environment"),
    CategoryRule(("security", "police", "cyber"), "Security"),
    CategoryRule(("technology", "ai", "digital", "smart"), "Technology"),
    CategoryRule(("water", "sanitation"), "Water & Sanitation"),
    CategoryRule(("rural", "village"), "Rural Development"),
    CategoryRule(("urban", "city"), "Urban Development"),
)


def infer_category(text: str, rules: tuple[CategoryRule, ...] = CATEGORY_RULES) -> str:
    """Map free text to a category by ordered substring matching."""
    lowered = text.lower()
    for rule in rules:
        if any(keyword in lowered for keyword in rule.keywords):
            return rule.category
    return GENERAL_CATEGORY


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_TITLE_PREFIX_RE = re.compile(r"^Problem Statement Title\s*\|\s*")
_DESCRIPTION_PREFIX_RE = re.compile(r"^Description\s*\|\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_ID_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]+")

_TITLE_SELECTOR = "h1, h2, h3, h4, .title, [class*='title'], .ps-title, .problem-title"
_DESCRIPTION_SELECTOR = (
    "p, .description, [class*='desc'], [class*='content'], .ps-desc, .problem-desc"
)
_CATEGORY_SELECTOR = (
    ".category, [class*='category'], [class*='domain'], .ps-category, .problem-category"
)
_ORGANIZATION_SELECTOR = (
    ".organization, [class*='org'], [class*='company'], .ps-org, .problem-org"
)

_TITLE_MIN_LENGTH = 10
_TITLE_MAX_LENGTH = 200
_DESCRIPTION_MAX_LENGTH = 500
_EXTRA_CELL_MIN_LENGTH = 10


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def make_problem_id(year: int, source_id: str | int, now: datetime) -> str:
    """``SIH<year>_<source>_<epoch-ms>``; unique across re-scrapes."""
    token = _ID_UNSAFE_RE.sub("-", str(source_id)).strip("-") or "X"
    return f"{edition_label(year)}_{token}_{_epoch_ms(now)}"


def _first_text(element: Tag, selector: str) -> str:
    match = element.select_one(selector)
    return _collapse(match.get_text(" ", strip=True)) if match is not None else ""


def _joined_text(element: Tag, selector: str) -> str:
    matches = element.select(selector)
    selected = {id(m) for m in matches}
    parts = [
        m.get_text(" ", strip=True)
        for m in matches
        if not any(id(parent) in selected for parent in m.parents)
    ]
    return _collapse(" ".join(parts))


def _longest_text_run(element: Tag) -> str:
    best = ""
    for descendant in element.find_all(True):
        text = _collapse(descendant.get_text(" ", strip=True))
        if _TITLE_MIN_LENGTH < len(text) < _TITLE_MAX_LENGTH and len(text) > len(best):
            best = text
    return best


# ---------------------------------------------------------------------------
# Draft construction
# ---------------------------------------------------------------------------


def _build_draft(
    *,
    year: int,
    source_id: str | int,
    title: str,
    description: str,
    category: str,
    organization_name: str,
    now: datetime,
) -> ProblemStatement:
    edition = edition_label(year)
    return ProblemStatement(
        problem_id=make_problem_id(year, source_id, now),
        title=title,
        description=description,
        category=category,
        year=year,
        edition=edition,
        organization_name=organization_name,
        technology=[],
        domain=[category],
        difficulty=Difficulty.MEDIUM,
        tags=[category, edition],
        complexity=1,
        estimated_effort="2-3 months",
        scraped_at=now,
        last_updated=now,
    )


def _table_fields(cells: list[str]) -> tuple[str, str, str]:
    """Return ``(source_id, title, description)`` for a table row."""
    source_id, title, rest = cells[0], cells[1], cells[2:]
    if ID_LABEL in cells[0]:
        # Key/value layout: label | id | title | description
        source_id, title, rest = cells[1], cells[2], cells[3:]
    elif TITLE_LABEL in cells[1]:
        title, rest = cells[2], cells[3:]

    if not rest:
        # Three-cell label rows carry no separate description cell.
        rest = [cells[2]]

    description = rest[0]
    if len(rest) > 1 and len(rest[1]) > _EXTRA_CELL_MIN_LENGTH:
        description = f"{description} {rest[1]}"

    title = _TITLE_PREFIX_RE.sub("", title).strip()
    description = _DESCRIPTION_PREFIX_RE.sub("", description).strip()
    return source_id, title, description


def _is_acceptable(title: str, description: str) -> bool:
    return bool(title) and bool(description) and title not in HEADER_LABELS


def normalize_candidate(
    candidate: Candidate,
    year: int,
    index: int,
    now: datetime | None = None,
) -> ProblemStatement | None:
    """Convert one extracted candidate into a draft, or ``None`` to skip it.

    Parameters
    ----------
    candidate:
        Element produced by :func:`extract_candidates`.
    year:
        Edition year of the listing page.
    index:
        1-based position of the candidate; used as the source id for
        non-tabular elements.
    now:
        Generation timestamp (defaults to the current UTC time).
    """
    now = now or datetime.now(UTC)
    element = candidate.element

    if candidate.is_table_row:
        cells = row_cells(element)
        if is_problem_row(cells):
            source_id, title, description = _table_fields(cells)
            if not _is_acceptable(title, description):
                logger.debug("normalize.row_rejected", year=year, index=index, title=title[:60])
                return None
            return _build_draft(
                year=year,
                source_id=source_id,
                title=title,
                description=description,
                category=infer_category(f"{title} {description}"),
                organization_name=DEFAULT_ORGANIZATION_NAME,
                now=now,
            )

    title = _first_text(element, _TITLE_SELECTOR) or _longest_text_run(element)
    description = _joined_text(element, _DESCRIPTION_SELECTOR)
    if not description:
        description = _collapse(element.get_text(" ", strip=True))[:_DESCRIPTION_MAX_LENGTH]

    if not _is_acceptable(title, description):
        logger.debug("normalize.block_rejected", year=year, index=index, title=title[:60])
        return None

    category = _first_text(element, _CATEGORY_SELECTOR) or infer_category(
        element.get_text(" ", strip=True)
    )
    organization = _first_text(element, _ORGANIZATION_SELECTOR) or DEFAULT_ORGANIZATION_NAME

    return _build_draft(
        year=year,
        source_id=index,
        title=title,
        description=description,
        category=category,
        organization_name=organization,
        now=now,
    )

"""Deterministic placeholder records used when live extraction falls short.

Dashboards, exports and the analysis layer expect a non-trivial,
category-diverse dataset for every edition year even when the listing
site is unreachable.  Records are generated by cycling through fixed
vocabularies with ``index mod len``; the only non-deterministic parts
are the generation timestamp and a short random suffix in
``problem_id``.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime
from typing import Final
from uuid import uuid4

from sihscope.models.problem import (
    DEFAULT_ORGANIZATION_SECTOR,
    DEFAULT_ORGANIZATION_TYPE,
    Difficulty,
    ProblemStatement,
    edition_label,
)

# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

SYNTHETIC_CATEGORIES: Final[tuple[str, ...]] = (
    "Healthcare",
    "Education",
    "Agriculture",
    "Transport",
    "Energy",
    "Environment",
    "Finance",
    "Security",
    "Communication",
    "Smart City",
    "Rural Development",
    "Urban Planning",
    "Technology",
    "Innovation",
    "Disaster Management",
)

SYNTHETIC_ORGANIZATIONS: Final[tuple[str, ...]] = (
    "Ministry of Health and Family Welfare",
    "Ministry of Education",
    "Ministry of Agriculture and Farmers Welfare",
    "Ministry of Road Transport and Highways",
    "Ministry of Power",
    "Ministry of Environment, Forest and Climate Change",
    "Ministry of Finance",
    "Ministry of Home Affairs",
    "Ministry of Communications",
    "Ministry of Housing and Urban Affairs",
)

SYNTHETIC_TECHNOLOGIES: Final[tuple[str, ...]] = (
    "AI/ML",
    "Blockchain",
    "IoT",
    "Mobile App Development",
    "Web Development",
    "Data Analytics",
    "Cybersecurity",
    "Cloud Computing",
    "Robotics",
    "AR/VR",
)

DIFFICULTY_CYCLE: Final[tuple[Difficulty, ...]] = (
    Difficulty.EASY,
    Difficulty.MEDIUM,
    Difficulty.HARD,
)

TITLE_TEMPLATES: Final[dict[str, tuple[str, ...]]] = {
    "Healthcare": (
        "Digital Health Records Management System",
        "AI-powered Disease Diagnosis Platform",
        "Telemedicine Solution for Rural Areas",
        "Medical Supply Chain Optimization",
        "Patient Monitoring and Alert System",
    ),
    "Education": (
        "Online Learning Platform for Rural Students",
        "AI-based Student Performance Analytics",
        "Digital Library Management System",
        "Skill Development Tracking Platform",
        "Educational Content Recommendation System",
    ),
    "Agriculture": (
        "Smart Farming IoT Solution",
        "Crop Disease Detection System",
        "Agricultural Supply Chain Management",
        "Weather-based Crop Advisory",
        "Soil Quality Monitoring System",
    ),
    "Transport": (
        "Smart Traffic Management System",
        "Public Transport Optimization",
        "Vehicle Fleet Management Solution",
        "Road Safety Monitoring System",
        "Intelligent Parking Management",
    ),
    "Energy": (
        "Renewable Energy Monitoring System",
        "Smart Grid Management Solution",
        "Energy Consumption Analytics",
        "Solar Panel Performance Tracking",
        "Energy Efficiency Optimization",
    ),
}

_CONSTRAINTS: Final[tuple[str, ...]] = (
    "Budget constraints",
    "Time limitations",
    "Scalability requirements",
    "User adoption considerations",
)
_RESOURCES: Final[tuple[str, ...]] = (
    "Open source tools",
    "Cloud platforms",
    "Public datasets",
    "Government APIs",
)


def _pick(values: tuple, index: int):
    return values[index % len(values)]


def synthetic_title(category: str, index: int, year: int) -> str:
    templates = TITLE_TEMPLATES.get(category) or (f"{category} Innovation Platform",)
    # Titles must stay unique per year: (title, year) is the upsert key.
    return f"{_pick(templates, index)} - SIH {year} #{index}"


def generate_synthetic(
    year: int,
    index: int,
    now: datetime | None = None,
) -> ProblemStatement:
    """Build the placeholder record for *year* at position *index*."""
    now = now or datetime.now(UTC)
    edition = edition_label(year)

    category = _pick(SYNTHETIC_CATEGORIES, index)
    organization = _pick(SYNTHETIC_ORGANIZATIONS, index)
    technology = _pick(SYNTHETIC_TECHNOLOGIES, index)
    difficulty = _pick(DIFFICULTY_CYCLE, index)

    rng = random.Random(f"{year}:{index}")
    complexity = rng.randint(1, 3)
    effort = f"{rng.randint(2, 4)}-{rng.randint(4, 6)} months"

    category_key = category.upper().replace(" ", "_")
    problem_id = (
        f"{edition}_{category_key}_{index}_{int(now.timestamp() * 1000)}_{uuid4().hex[:6]}"
    )
    subject = category.lower()

    return ProblemStatement(
        problem_id=problem_id,
        title=synthetic_title(category, index, year),
        description=(
            f"Develop a comprehensive solution for {subject} challenges. "
            "This problem focuses on creating innovative technology solutions "
            f"to address real-world issues in {subject} sector. The solution "
            "should be scalable, user-friendly, and demonstrate practical "
            "application of modern technologies."
        ),
        category=category,
        year=year,
        edition=edition,
        organization_name=organization,
        organization_type=DEFAULT_ORGANIZATION_TYPE,
        organization_sector=DEFAULT_ORGANIZATION_SECTOR,
        technology=[technology],
        domain=[category],
        difficulty=difficulty,
        expected_outcome=(
            f"A working prototype or solution that addresses the {subject} "
            "challenge with clear demonstration of functionality and potential impact."
        ),
        constraints=list(_CONSTRAINTS),
        resources=list(_RESOURCES),
        tags=[category, edition, "Innovation", "Technology"],
        complexity=complexity,
        estimated_effort=effort,
        scraped_at=now,
        last_updated=now,
    )


def fill_synthetic(
    year: int,
    start_index: int,
    count: int,
    now: datetime | None = None,
) -> list[ProblemStatement]:
    """Generate *count* records with indexes ``start_index + 1`` onwards."""
    return [
        generate_synthetic(year, start_index + offset, now=now)
        for offset in range(1, count + 1)
    ]

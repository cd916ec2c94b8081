"""Tests for the synthetic fallback record generator."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sihscope.models.problem import Difficulty
from sihscope.services.scraping.synthetic import (
    SYNTHETIC_CATEGORIES,
    fill_synthetic,
    generate_synthetic,
)

NOW = datetime(2024, 9, 1, 12, 0, tzinfo=UTC)


class TestGenerateSynthetic:
    def test_distinct_ids_across_timestamps(self):
        first = generate_synthetic(2030, 7, now=NOW)
        second = generate_synthetic(2030, 7, now=NOW + timedelta(milliseconds=5))
        assert first.problem_id != second.problem_id

    def test_distinct_ids_same_millisecond(self):
        first = generate_synthetic(2030, 7, now=NOW)
        second = generate_synthetic(2030, 7, now=NOW)
        assert first.problem_id != second.problem_id

    def test_content_is_deterministic(self):
        first = generate_synthetic(2030, 7, now=NOW)
        second = generate_synthetic(2030, 7, now=NOW + timedelta(days=1))
        assert first.title == second.title
        assert first.complexity == second.complexity
        assert first.estimated_effort == second.estimated_effort

    def test_cycles_vocabularies(self):
        record = generate_synthetic(2030, 7, now=NOW)
        assert record.category == "Security"
        assert record.organization_name == "Ministry of Home Affairs"
        assert record.technology == ["Cloud Computing"]
        assert record.difficulty == Difficulty.MEDIUM
        assert record.problem_id.startswith(f"SIH2030_SECURITY_7_{int(NOW.timestamp() * 1000)}_")

    def test_multiword_category_id(self):
        record = generate_synthetic(2024, 9, now=NOW)
        assert record.category == "Smart City"
        assert record.problem_id.startswith("SIH2024_SMART_CITY_9_")

    def test_template_titles(self):
        assert generate_synthetic(2024, 0, now=NOW).title == (
            "Digital Health Records Management System - SIH 2024 #0"
        )
        assert generate_synthetic(2024, 5, now=NOW).title == (
            "Environment Innovation Platform - SIH 2024 #5"
        )

    def test_fields(self):
        record = generate_synthetic(2024, 1, now=NOW)
        assert record.edition == "SIH2024"
        assert record.tags == ["Education", "SIH2024", "Innovation", "Technology"]
        assert record.domain == ["Education"]
        assert 1 <= record.complexity <= 3
        assert record.estimated_effort.endswith(" months")
        assert record.constraints
        assert record.resources
        assert "education" in record.description
        assert record.scraped_at == NOW


class TestFillSynthetic:
    def test_full_fallback_batch(self):
        records = fill_synthetic(2024, 0, 200, now=NOW)
        assert len(records) == 200
        assert len({r.problem_id for r in records}) == 200
        assert len({r.title for r in records}) == 200
        assert all(r.title and r.description for r in records)
        assert {r.category for r in records} == set(SYNTHETIC_CATEGORIES)

    def test_indexes_continue_after_start(self):
        records = fill_synthetic(2024, 3, 2, now=NOW)
        assert [r.title.rsplit("#", 1)[1] for r in records] == ["4", "5"]

    def test_zero_count(self):
        assert fill_synthetic(2024, 0, 0) == []

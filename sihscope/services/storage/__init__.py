"""Problem and session persistence.

Two interchangeable :class:`ProblemStore` implementations are provided:
:class:`InMemoryProblemStore` (no durability) and
:class:`JsonFileProblemStore` (orjson files under ``data_dir``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sihscope.services.storage.base import (
    ProblemPage,
    ProblemQuery,
    ProblemStore,
    StoreStats,
    apply_query,
    compute_stats,
    parse_year_filter,
)
from sihscope.services.storage.json_file import JsonFileProblemStore
from sihscope.services.storage.memory import InMemoryProblemStore

if TYPE_CHECKING:
    from config.settings import Settings


def build_store(settings: Settings) -> ProblemStore:
    """Create the store selected by ``settings.storage_backend``."""
    if settings.storage_backend == "json":
        return JsonFileProblemStore(settings.data_dir)
    return InMemoryProblemStore()


__all__ = [
    "InMemoryProblemStore",
    "JsonFileProblemStore",
    "ProblemPage",
    "ProblemQuery",
    "ProblemStore",
    "StoreStats",
    "apply_query",
    "build_store",
    "compute_stats",
    "parse_year_filter",
]

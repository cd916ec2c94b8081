"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion.  All keys use
the ``SIH_`` prefix (e.g. ``SIH_REQUEST_DELAY_MS=750``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the SIH Scope service.

    Environment variables are loaded from a ``.env`` file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="SIH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Scraping ───────────────────────────────────────────────────────
    base_url: str = "https://sih.gov.in"
    user_agent: str = ""  # empty means the built-in browser UA
    request_delay_ms: int = Field(default=500, ge=0)
    candidate_delay_ms: int = Field(default=50, ge=0)
    inter_year_delay_s: float = Field(default=5.0, ge=0)
    request_timeout_s: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    year_start: int = 2015
    year_end: int = 2025
    freshness_days: int = Field(default=7, ge=0)
    scrape_profile: Literal["full", "light"] = "full"
    max_parallel_years: int = Field(default=1, ge=1)
    campaign_deadline_s: float | None = None

    # ── Storage ────────────────────────────────────────────────────────
    storage_backend: Literal["memory", "json"] = "json"
    data_dir: str = "data"

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def target_years(self) -> list[int]:
        """Configured edition years, newest first."""
        return list(range(self.year_end, self.year_start - 1, -1))


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()

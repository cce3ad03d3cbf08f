"""Pydantic v2 settings for SightSignal — all tunables via env vars prefixed SIGHTSIGNAL_."""

from __future__ import annotations

import functools
import logging
from typing import List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Evaluation and ranking tunables; module defaults mirror these values."""

    model_config = SettingsConfigDict(
        env_prefix="SIGHTSIGNAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Storage ──────────────────────────────────────────────────────────────
    db_path: str = "~/.sightsignal/catalog.db"

    # ── Reputation tiers ─────────────────────────────────────────────────────
    trusted_threshold: float = 50
    new_threshold: float = 10

    # ── Ranking weights ──────────────────────────────────────────────────────
    view_weight: float = 1.0
    subscriber_weight: float = 10.0
    sighting_weight: float = 5.0
    distance_scale: float = 100.0
    viral_multiplier: float = 2.0
    official_global_bonus: float = 10000.0
    unimportant_score: float = -1000.0
    category_boosts: str | List[float] = "3.0,2.0,1.5"

    # ── Viral detection ──────────────────────────────────────────────────────
    viral_ratio: float = 3.0
    viral_cold_start_minimum: float = 10
    viral_window_days: int = 8

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"

    # ── Field validators ─────────────────────────────────────────────────────

    @field_validator("category_boosts", mode="before")
    @classmethod
    def parse_category_boosts(cls, v: object) -> List[float]:
        """Accept comma-separated string or list."""
        if isinstance(v, str):
            return [float(b.strip()) for b in v.split(",") if b.strip()]
        if isinstance(v, (list, tuple)):
            return [float(b) for b in v]
        return []

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    # ── Model validators ─────────────────────────────────────────────────────

    @model_validator(mode="after")
    def validate_tier_thresholds(self) -> "Settings":
        """new_threshold must sit strictly below trusted_threshold."""
        if self.new_threshold >= self.trusted_threshold:
            raise ValueError(
                f"new_threshold ({self.new_threshold}) must be below "
                f"trusted_threshold ({self.trusted_threshold})"
            )
        return self

    @model_validator(mode="after")
    def validate_category_boosts(self) -> "Settings":
        """Boosts are ≥ 1.0 and non-increasing by preference rank."""
        boosts = list(self.category_boosts)
        if not boosts:
            raise ValueError("category_boosts must contain at least one value")
        if any(b < 1.0 for b in boosts):
            raise ValueError(f"category_boosts must all be >= 1.0, got {boosts}")
        if any(later > earlier for earlier, later in zip(boosts, boosts[1:])):
            raise ValueError(f"category_boosts must be non-increasing, got {boosts}")
        return self

    @model_validator(mode="after")
    def validate_viral_settings(self) -> "Settings":
        if self.viral_multiplier < 1.0:
            raise ValueError(
                f"viral_multiplier must be >= 1.0, got {self.viral_multiplier}"
            )
        if self.viral_window_days < 2:
            raise ValueError(
                f"viral_window_days must be >= 2, got {self.viral_window_days}"
            )
        return self


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings singleton."""
    return Settings()


def get_log_level(settings: Settings) -> int:
    return getattr(logging, settings.log_level, logging.INFO)

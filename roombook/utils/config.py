"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str = "Roombook Scheduling API"
    app_version: str = "1.0.0"
    database_path: Path = PROJECT_ROOT / "data" / "roombook.db"
    log_level: str = "INFO"
    seed_demo_data: bool = True

    # Engine tuning
    suggestion_max_results: int = 10
    availability_default_window_hours: int = 24

    # Booking lifecycle
    booking_default_status: str = "CONFIRMED"
    booking_title_min_length: int = 3
    booking_title_max_length: int = 120


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call ``cache_clear()`` to re-read env."""
    defaults = Settings()
    database_path = os.getenv("ROOMBOOK_DATABASE_PATH")
    return Settings(
        app_name=os.getenv("ROOMBOOK_APP_NAME", defaults.app_name),
        app_version=os.getenv("ROOMBOOK_APP_VERSION", defaults.app_version),
        database_path=Path(database_path) if database_path else defaults.database_path,
        log_level=os.getenv("ROOMBOOK_LOG_LEVEL", defaults.log_level),
        seed_demo_data=_env_bool("ROOMBOOK_SEED_DEMO_DATA", defaults.seed_demo_data),
        suggestion_max_results=_env_int(
            "ROOMBOOK_SUGGESTION_MAX_RESULTS",
            defaults.suggestion_max_results,
        ),
        availability_default_window_hours=_env_int(
            "ROOMBOOK_AVAILABILITY_WINDOW_HOURS",
            defaults.availability_default_window_hours,
        ),
        booking_default_status=os.getenv(
            "ROOMBOOK_BOOKING_DEFAULT_STATUS",
            defaults.booking_default_status,
        ).upper(),
    )

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_url: str
    reservations_api_key: str
    admin_api_key: str
    max_future_reservations: int
    cancellation_deadline_hours: int
    club_timezone: str
    log_level: str


def _clean(value: str) -> str:
    return value.strip().strip('"').strip("'")


def _get_required_env(name: str) -> str:
    value = _clean(os.getenv(name, ""))
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _clean(os.getenv(name, ""))
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}, got {value}")
    return value


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_name="Court Reservations API",
        app_version="1.0.0",
        database_url=_get_required_env("DATABASE_URL"),
        reservations_api_key=_get_required_env("RESERVATIONS_API_KEY"),
        admin_api_key=_get_required_env("ADMIN_API_KEY"),
        max_future_reservations=_get_int_env("MAX_FUTURE_RESERVATIONS", 5, minimum=1),
        cancellation_deadline_hours=_get_int_env("CANCELLATION_DEADLINE_HOURS", 2),
        club_timezone=_clean(os.getenv("CLUB_TIMEZONE", "")) or "UTC",
        log_level=(_clean(os.getenv("LOG_LEVEL", "")) or "INFO").upper(),
    )

"""Runtime configuration for the lead tracking and automation core.

Values come from the process environment; a local ``.env`` file is loaded
first so development setups only need to copy ``.env.example``.

Usage:
    from app_config import get_settings
    settings = get_settings()
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_DRIVERS = ("postgresql+asyncpg", "sqlite+aiosqlite")


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30

    email_api_url: Optional[str] = None
    tasks_api_url: Optional[str] = None
    http_timeout_seconds: int = 10

    queue_drain_interval_seconds: int = 60
    campaign_check_interval_seconds: int = 60
    segment_recompute_interval_seconds: int = 3600

    log_level: str = "INFO"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    return Settings(
        database_url=os.environ.get("DATABASE_URL") or None,
        db_pool_size=_int_env("DB_POOL_SIZE", 5),
        db_max_overflow=_int_env("DB_MAX_OVERFLOW", 10),
        db_pool_timeout=_int_env("DB_POOL_TIMEOUT", 30),
        email_api_url=os.environ.get("EMAIL_API_URL") or None,
        tasks_api_url=os.environ.get("TASKS_API_URL") or None,
        http_timeout_seconds=_int_env("HTTP_TIMEOUT_SECONDS", 10),
        queue_drain_interval_seconds=_int_env("QUEUE_DRAIN_INTERVAL_SECONDS", 60),
        campaign_check_interval_seconds=_int_env("CAMPAIGN_CHECK_INTERVAL_SECONDS", 60),
        segment_recompute_interval_seconds=_int_env("SEGMENT_RECOMPUTE_INTERVAL_SECONDS", 3600),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )

"""
Runtime configuration for the route analytics pipeline.

All settings come from environment variables (a local .env file is loaded
first). Components never read the environment directly: build a Settings
once and pass the clients created from it.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    tomtom_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    questdb_url: Optional[str] = None

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    cache_ttl_seconds: int = 60

    # Timeouts for every external call (seconds)
    provider_timeout: float = 10.0
    narrative_timeout: float = 15.0
    questdb_timeout: float = 30.0
    readiness_timeout: float = 5.0
    db_connect_timeout: float = 10.0
    db_pool_timeout: float = 10.0
    db_statement_timeout: float = 30.0
    redis_timeout: float = 5.0

    narrative_min_interval: float = 1.0
    migration_batch_size: int = 50
    history_window_days: int = 7
    enable_scheduler: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            tomtom_api_key=os.getenv("TOMTOM_API_KEY") or None,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            questdb_url=os.getenv("QUESTDB_HTTP") or None,
            redis_host=os.getenv("REDIS_HOST", "localhost"),
            redis_port=_env_int("REDIS_PORT", 6379),
            redis_password=os.getenv("REDIS_PASSWORD") or None,
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", 60),
            provider_timeout=_env_float("PROVIDER_TIMEOUT_SECONDS", 10.0),
            narrative_timeout=_env_float("NARRATIVE_TIMEOUT_SECONDS", 15.0),
            questdb_timeout=_env_float("QUESTDB_TIMEOUT_SECONDS", 30.0),
            readiness_timeout=_env_float("READINESS_TIMEOUT_SECONDS", 5.0),
            db_connect_timeout=_env_float("DB_CONNECT_TIMEOUT_SECONDS", 10.0),
            db_pool_timeout=_env_float("DB_POOL_TIMEOUT_SECONDS", 10.0),
            db_statement_timeout=_env_float("DB_STATEMENT_TIMEOUT_SECONDS", 30.0),
            redis_timeout=_env_float("REDIS_TIMEOUT_SECONDS", 5.0),
            narrative_min_interval=_env_float("NARRATIVE_MIN_INTERVAL_SECONDS", 1.0),
            migration_batch_size=_env_int("MIGRATION_BATCH_SIZE", 50),
            history_window_days=_env_int("HISTORY_WINDOW_DAYS", 7),
            enable_scheduler=_env_flag("ENABLE_SCHEDULER"),
        )


def configure_logging(level: int = logging.INFO):
    """Install one stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
    root.setLevel(level)

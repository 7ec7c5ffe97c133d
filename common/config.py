from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Full SQLAlchemy URL; when unset the SQL Server fields below are used.
    database_url: Optional[str]
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    odbc_driver: str

    reading_batch_size: int
    insert_max_attempts: int
    insert_retry_base_delay: float
    insert_retry_multiplier: float
    insert_max_workers: int

    collection_interval_seconds: float
    collection_scheduler_enabled: bool
    cache_lock_timeout_seconds: float

    # Operator API key; unset means open access outside production.
    ingest_api_key: Optional[str] = None
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("METER_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    # Driver name depends on the OS image.
    # Common values:
    # - ODBC Driver 17 for SQL Server
    # - ODBC Driver 18 for SQL Server
    odbc_driver = os.getenv("ODBC_DRIVER", "ODBC Driver 17 for SQL Server")

    batch_size = int(os.getenv("READING_BATCH_SIZE", "100"))
    if not 1 <= batch_size <= 100:
        raise ValueError(f"READING_BATCH_SIZE must be between 1 and 100, got {batch_size}")

    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "1433")),
        db_user=os.getenv("DB_USER", "sa"),
        db_password=os.getenv("DB_PASSWORD", ""),
        db_name=os.getenv("DB_NAME", "meter_readings"),
        odbc_driver=odbc_driver,
        reading_batch_size=batch_size,
        insert_max_attempts=int(os.getenv("INSERT_MAX_ATTEMPTS", "3")),
        insert_retry_base_delay=float(os.getenv("INSERT_RETRY_BASE_DELAY_SEC", "1.0")),
        insert_retry_multiplier=float(os.getenv("INSERT_RETRY_MULTIPLIER", "2.0")),
        insert_max_workers=int(os.getenv("INSERT_MAX_WORKERS", "4")),
        collection_interval_seconds=float(os.getenv("COLLECTION_INTERVAL_SEC", "60")),
        collection_scheduler_enabled=_env_bool("COLLECTION_SCHEDULER_ENABLED", "1"),
        cache_lock_timeout_seconds=float(os.getenv("CACHE_LOCK_TIMEOUT_SEC", "5.0")),
        ingest_api_key=os.getenv("INGEST_API_KEY") or None,
        environment=os.getenv("ENVIRONMENT", "development").strip().lower(),
    )

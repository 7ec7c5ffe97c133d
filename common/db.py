from __future__ import annotations

from typing import Optional
from urllib.parse import quote_plus
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import Settings, get_settings


logger = logging.getLogger(__name__)


def build_sqlalchemy_url(settings: Settings) -> str:
    if settings.database_url:
        return settings.database_url

    # Use the recommended odbc_connect form.
    # This handles:
    # - passwords with special characters
    # - driver names with spaces
    # - SQL Server port syntax (SERVER=host,port)
    odbc_str = (
        f"DRIVER={{{settings.odbc_driver}}};"
        f"SERVER={settings.db_host},{settings.db_port};"
        f"DATABASE={settings.db_name};"
        f"UID={settings.db_user};"
        f"PWD={settings.db_password};"
        "TrustServerCertificate=yes;"
    )

    return f"mssql+pyodbc:///?odbc_connect={quote_plus(odbc_str)}"


def get_engine(settings: Optional[Settings] = None) -> Engine:
    settings = settings or get_settings()
    url = build_sqlalchemy_url(settings)

    # Connection parameters without the password
    if settings.database_url:
        logger.info("[DB] Create engine from DATABASE_URL dialect=%s", url.split(":", 1)[0])
    else:
        logger.info(
            "[DB] Create SQL Server engine host=%s port=%s db=%s user=%s driver=%s",
            settings.db_host,
            settings.db_port,
            settings.db_name,
            settings.db_user,
            settings.odbc_driver,
        )

    engine = create_engine(url, pool_pre_ping=True)

    # Connection probe: shows in the logs whether the service reaches the DB
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Connection test OK")
    except Exception:
        logger.exception("[DB] Connection test FAILED")

    return engine


def ping(engine: Engine) -> None:
    """Raise if the database cannot answer ``SELECT 1``."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

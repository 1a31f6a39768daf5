"""
Database utilities for SQLite operations.

Provides connection management and schema initialization for the tenant and
event stores. Each call opens its own short-lived connection, so worker
threads never share one.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from utils.config import settings

logger = logging.getLogger(__name__)


def get_conn(path: str | None = None) -> sqlite3.Connection:
    """
    Get SQLite database connection with dict-friendly row factory.

    Args:
        path: Database file path, defaults to settings.SQLITE_PATH

    Returns:
        SQLite connection with row_factory set to sqlite3.Row

    Raises:
        sqlite3.Error: If connection fails
    """
    db_path = Path(path or settings.SQLITE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # Concurrent tenant workers write to the same file
    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    Open a connection, commit on success, roll back on error, always close.

    Args:
        path: Database file path, defaults to settings.SQLITE_PATH

    Yields:
        Open SQLite connection
    """
    conn = get_conn(path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_schema(path: str | None = None) -> None:
    """
    Initialize database schema by creating required tables if they don't exist.

    Creates:
    - tenant_configurations: tenant settings and extraction state
    - extracted_events: one row per (tenant_id, event_id)

    Args:
        path: Database file path, defaults to settings.SQLITE_PATH

    Raises:
        sqlite3.Error: If schema creation fails
    """
    with transaction(path) as conn:
        conn.execute("PRAGMA journal_mode=WAL")

        conn.execute("""
            CREATE TABLE IF NOT EXISTS tenant_configurations (
                tenant_id TEXT PRIMARY KEY,
                company_name TEXT NOT NULL DEFAULT '',
                api_url TEXT NOT NULL,
                api_key TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                extraction_interval_minutes INTEGER NOT NULL DEFAULT 5,
                extract_custom_events INTEGER NOT NULL DEFAULT 1,
                extract_standard_events INTEGER NOT NULL DEFAULT 1,
                max_retry_attempts INTEGER NOT NULL DEFAULT 3,
                timeout_seconds REAL NOT NULL DEFAULT 30,
                last_successful_extraction TEXT,
                last_attempted_extraction TEXT,
                last_extraction_error TEXT,
                last_custom_cursor TEXT,
                last_standard_cursor TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_active_last_attempted
            ON tenant_configurations (active, last_attempted_extraction)
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS extracted_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id TEXT NOT NULL,
                event_id TEXT NOT NULL,
                category TEXT NOT NULL,
                event_name TEXT NOT NULL,
                payload TEXT NOT NULL,
                event_timestamp TEXT NOT NULL,
                extracted_at TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'EXTRACTED',
                processing_error TEXT,
                retry_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_tenant_event
            ON extracted_events (tenant_id, event_id)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_extracted_at
            ON extracted_events (extracted_at)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_status
            ON extracted_events (tenant_id, status)
        """)

    logger.info("DB schema ready", extra={"db_path": path or settings.SQLITE_PATH})

"""Database connection and schema initialization for the quote store."""

import sqlite3
from pathlib import Path
from contextlib import contextmanager
from typing import Generator, Union
import logging

from config import Config

logger = logging.getLogger(__name__)


def get_db_path(db_path: Union[str, Path, None] = None) -> Path:
    """Return the database path, creating parent directory if needed."""
    path = Path(db_path if db_path is not None else Config.QUOTES_DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


@contextmanager
def get_connection(db_path: Union[str, Path, None] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Args:
        db_path: Optional custom path to database file

    Yields:
        SQLite connection with Row factory enabled
    """
    conn = sqlite3.connect(get_db_path(db_path), timeout=5)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Union[str, Path, None] = None) -> None:
    """
    Initialize database schema if tables don't exist.

    Args:
        db_path: Optional custom path to database file
    """
    with get_connection(db_path) as conn:
        cursor = conn.cursor()

        # Whole-cache snapshot, always a single row
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS quote_snapshot (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                saved_at TEXT NOT NULL,
                entries TEXT NOT NULL
            )
        """)

        # Key/value preferences (app settings, widget settings, status log)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS preferences (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT,
                position INTEGER NOT NULL,
                PRIMARY KEY (namespace, key)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_preferences_position
            ON preferences(namespace, position)
        """)

        conn.commit()
        logger.debug("Quote database schema initialized")

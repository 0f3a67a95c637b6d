"""SQLite-backed persistence for the quote cache snapshot."""

from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Union
import json
import logging
import sqlite3

from .db import get_connection, init_db
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Reads and writes the whole quote cache as one JSON document.

    The snapshot lives in a single row, so every save replaces it inside one
    transaction and a reader never sees a half-written map.
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = db_path
        try:
            init_db(db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not initialize quote store: {e}") from e

    def read(self) -> Optional[Dict[str, Any]]:
        """
        Return the stored snapshot document, or None on a cold start.

        Raises:
            PersistenceError: the database could not be read
            ValueError: the stored payload is not valid JSON
        """
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT saved_at, entries FROM quote_snapshot WHERE id = 1"
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read quote snapshot: {e}") from e

        if row is None:
            return None

        return {
            'saved_at': row['saved_at'],
            'entries': json.loads(row['entries'])
        }

    def write(self, entries: Dict[str, Dict[str, Any]], saved_at: datetime) -> None:
        """
        Replace the stored snapshot.

        Args:
            entries: symbol -> serialized quote
            saved_at: Timestamp recorded alongside the entries

        Raises:
            PersistenceError: the database could not be written
        """
        payload = json.dumps(entries, sort_keys=True)
        try:
            with get_connection(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO quote_snapshot (id, saved_at, entries)
                    VALUES (1, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        saved_at = excluded.saved_at,
                        entries = excluded.entries
                """, (saved_at.isoformat(), payload))
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not write quote snapshot: {e}") from e

        logger.debug(f"Saved quote snapshot with {len(entries)} entries")

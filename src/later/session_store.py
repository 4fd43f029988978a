"""
SQLite persistence for the saved session
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from .exceptions import PersistenceFailed
from .process_actions import RunningAppDescriptor

logger = logging.getLogger(__name__)


class SessionStore:
    """Keeps at most one session on disk so restore survives a restart"""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_database(self) -> None:
        """Initialize the SQLite database"""
        try:
            conn = self._connect()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS session (
                        id INTEGER PRIMARY KEY CHECK (id = 1),
                        created_at TEXT NOT NULL,
                        apps_json TEXT NOT NULL
                    )
                """)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Error initializing session database %s: %s", self.db_path, e)

    def save(self, apps: list[RunningAppDescriptor], created_at: datetime) -> None:
        apps_json = json.dumps([a.to_dict() for a in apps])
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO session (id, created_at, apps_json)
                        VALUES (1, ?, ?)
                        ON CONFLICT(id) DO UPDATE SET
                            created_at = excluded.created_at,
                            apps_json = excluded.apps_json
                        """,
                        (created_at.isoformat(), apps_json),
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailed(f"could not save session: {e}") from e

    def load(self) -> tuple[list[RunningAppDescriptor], datetime] | None:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT created_at, apps_json FROM session WHERE id = 1"
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Error loading session: %s", e)
            return None

        if not row:
            return None
        created_at, apps_json = row
        try:
            apps = [RunningAppDescriptor.from_dict(d) for d in json.loads(apps_json)]
            return apps, datetime.fromisoformat(created_at)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error("Discarding unreadable stored session: %s", e)
            return None

    def clear(self) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("DELETE FROM session")
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailed(f"could not clear session: {e}") from e

"""Best-effort recovery hint: the last progress snapshot of an unfinished run."""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_CREATE_SQL = """
CREATE TABLE IF NOT EXISTS recovery_hints (
    project_id INTEGER PRIMARY KEY,
    payload TEXT NOT NULL,
    saved_at REAL NOT NULL
)
"""


class RecoveryHintStore:
    """Stores one progress snapshot per project, expiring after ttl_hours.

    The hint is advisory only. The persistent store is always the source of
    truth, so read and write failures are logged and never raised.
    """

    def __init__(
        self,
        db_path: str | Path,
        ttl_hours: float = 24.0,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = Path(db_path)
        self.ttl_seconds = ttl_hours * 3600
        self._clock = clock
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute(_CREATE_SQL)
        except (OSError, sqlite3.Error) as e:
            logger.warning("Recovery hint store unavailable at %s: %s", self.db_path, e)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def put(self, project_id: int, payload: dict) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO recovery_hints (project_id, payload, saved_at) "
                        "VALUES (?, ?, ?)",
                        (project_id, json.dumps(payload, ensure_ascii=False), self._clock()),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.warning("Could not save recovery hint for project %d: %s", project_id, e)

    def get(self, project_id: int) -> Optional[dict]:
        """Return the saved snapshot, or None when missing, expired, or unreadable."""
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT payload, saved_at FROM recovery_hints WHERE project_id = ?",
                    (project_id,),
                ).fetchone()
                if not row:
                    return None
                payload, saved_at = row
                if self._clock() - saved_at > self.ttl_seconds:
                    with conn:
                        conn.execute(
                            "DELETE FROM recovery_hints WHERE project_id = ?", (project_id,),
                        )
                    logger.debug("Recovery hint for project %d expired", project_id)
                    return None
                return json.loads(payload)
            finally:
                conn.close()
        except (sqlite3.Error, ValueError) as e:
            logger.warning("Could not read recovery hint for project %d: %s", project_id, e)
            return None

    def clear(self, project_id: int) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("DELETE FROM recovery_hints WHERE project_id = ?", (project_id,))
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Could not clear recovery hint for project %d: %s", project_id, e)

    def has_unfinished(self, project_id: int) -> bool:
        hint = self.get(project_id)
        return hint is not None and hint.get("status") != "completed"

"""Persisted session pair using SQLite."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import AuthUser

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class SessionStore:
    """Key-value persistence for the `token` and `user` entries.

    Both entries are written and removed inside a single transaction, so a
    reader never sees a token without its user or the reverse.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.init_db()

    def get_connection(self) -> sqlite3.Connection:
        """Get SQLite database connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Initialize database schema."""
        conn = self.get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS session_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
            logger.debug("Session database initialized")
        finally:
            conn.close()

    def read(self, key: str) -> Optional[str]:
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                "SELECT value FROM session_state WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            return row["value"] if row is not None else None
        finally:
            conn.close()

    def load_token(self) -> Optional[str]:
        return self.read(TOKEN_KEY)

    def load_user(self) -> Optional[AuthUser]:
        """Return the cached profile, or None when absent or unreadable."""
        raw = self.read(USER_KEY)
        if raw is None:
            return None
        try:
            return AuthUser.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable cached user profile: {e}")
            return None

    def save(self, token: str, user: AuthUser) -> None:
        """Persist the token and user together."""
        conn = self.get_connection()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO session_state (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    """,
                    [
                        (TOKEN_KEY, token),
                        (USER_KEY, json.dumps(user.model_dump(by_alias=True))),
                    ],
                )
            logger.debug(f"Persisted session for user {user.id}")
        finally:
            conn.close()

    def clear(self) -> None:
        """Remove both persisted entries."""
        conn = self.get_connection()
        try:
            with conn:
                conn.execute(
                    "DELETE FROM session_state WHERE key IN (?, ?)",
                    (TOKEN_KEY, USER_KEY),
                )
            logger.debug("Cleared persisted session")
        finally:
            conn.close()

"""
Repository pattern for data access.

Handles the append-only AI usage log: one row per token-consuming
generation attempt.
"""

from datetime import datetime
from typing import List, Optional

from ai_quiz_gen.config.loader import DEFAULT_DB_PATH

from .db import get_connection
from .models import UsageLogEntry


class UsageRepository:
    """Repository for reading and appending AI usage log rows.

    Connections are opened per operation; no state is shared between
    requests.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def count_for_user(self, user_id: str) -> int:
        """Count all usage log rows for a user (lifetime, no date window).

        Args:
            user_id: ID of the user to count attempts for

        Returns:
            Number of logged generation attempts
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM ai_usage_logs WHERE user_id = ?",
                (user_id,)
            )
            row = cursor.fetchone()
            return row[0] or 0
        finally:
            conn.close()

    def insert(self, entry: UsageLogEntry) -> None:
        """Append one usage log row."""
        insert_usage_log(entry, self.db_path)

    def fetch_for_user(self, user_id: str, limit: int = 100) -> List[UsageLogEntry]:
        """Get a user's usage log rows, newest first.

        Args:
            user_id: ID of the user
            limit: Maximum number of rows to return

        Returns:
            List of usage log entries ordered by requested_at (newest first)
        """
        return fetch_usage_logs(user_id=user_id, limit=limit, db_path=self.db_path)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the ai_usage_logs table if it doesn't exist.

    This is an append-only log. No UPDATE or DELETE operations should ever
    be performed on this table; quota accounting depends on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_usage_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                model_used TEXT NOT NULL,
                tokens_used INTEGER NOT NULL,
                requested_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_ai_usage_logs_user_id
            ON ai_usage_logs (user_id)
        """)
        conn.commit()
    finally:
        conn.close()


def insert_usage_log(entry: UsageLogEntry, db_path: str = DEFAULT_DB_PATH) -> None:
    """Insert a single usage log row.

    Args:
        entry: The usage log entry to record
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            INSERT INTO ai_usage_logs
            (user_id, model_used, tokens_used, requested_at)
            VALUES (?, ?, ?, ?)
        """, (
            entry.user_id,
            entry.model_used,
            entry.tokens_used,
            entry.requested_at.isoformat()
        ))
        conn.commit()
    finally:
        conn.close()


def fetch_usage_logs(
    user_id: Optional[str] = None,
    limit: int = 100,
    db_path: str = DEFAULT_DB_PATH
) -> List[UsageLogEntry]:
    """Fetch recent usage log rows, optionally filtered by user.

    Args:
        user_id: Optional filter for a specific user
        limit: Maximum number of rows to return
        db_path: Path to SQLite database file

    Returns:
        List of usage log entries ordered by requested_at (newest first)
    """
    conn = get_connection(db_path)
    try:
        query = "SELECT user_id, model_used, tokens_used, requested_at FROM ai_usage_logs"
        params = []

        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)

        query += " ORDER BY requested_at DESC, id DESC LIMIT ?"
        params.append(limit)

        cursor = conn.execute(query, params)
        return [
            UsageLogEntry(
                user_id=row[0],
                model_used=row[1],
                tokens_used=row[2],
                requested_at=datetime.fromisoformat(row[3])
            )
            for row in cursor.fetchall()
        ]
    finally:
        conn.close()

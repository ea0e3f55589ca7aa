"""
Database connection management for the AI usage log.
"""

import sqlite3
from pathlib import Path

from ai_quiz_gen.config.loader import DEFAULT_DB_PATH

# Seconds a writer waits on a locked database before sqlite raises
BUSY_TIMEOUT_SECONDS = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection to the usage log database.

    The parent directory is created when missing so AI_QUIZ_DB_PATH can point
    at a fresh location.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection; callers close it when the operation completes
    """
    path = Path(db_path)
    if path.parent != Path("."):
        path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)

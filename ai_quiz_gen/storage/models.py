"""
Data models for storage layer.

Defines the usage-log entity counted by the quota service.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UsageLogEntry:
    """Immutable record of one token-consuming generation attempt.
    
    Append-only rows that are the source of truth for quota counting:
    attempts are counted, not saved quizzes, so discarding a generated
    quiz and retrying still consumes quota.
    """
    user_id: str
    model_used: str
    tokens_used: int
    requested_at: datetime

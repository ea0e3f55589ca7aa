"""
AI generation quota enforcement.

Quota is a lifetime cap on generation attempts per user, computed on each
check from the usage log. Nothing is reserved or locked: two concurrent
requests can both pass the gate before either logs usage.
"""

from dataclasses import dataclass
from typing import Dict

from ai_quiz_gen.storage.repository import UsageRepository


@dataclass(frozen=True)
class UserQuota:
    """A user's generation quota at the time of the check."""
    used: int
    limit: int
    remaining: int
    has_reached_limit: bool

    @classmethod
    def from_count(cls, used: int, limit: int) -> "UserQuota":
        return cls(
            used=used,
            limit=limit,
            remaining=max(0, limit - used),
            has_reached_limit=used >= limit,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "has_reached_limit": self.has_reached_limit,
        }


class QuotaService:
    """Reads usage counts and compares them to the configured limit."""

    def __init__(self, repository: UsageRepository, limit: int):
        """
        Args:
            repository: Usage log repository to count attempts from
            limit: Maximum generation attempts per user (fixed for the process)

        Raises:
            ValueError: If limit is not positive
        """
        if limit < 1:
            raise ValueError("limit must be > 0")
        self.repository = repository
        self.limit = limit

    def get_quota(self, user_id: str) -> UserQuota:
        """Count the user's usage log rows and derive the quota view."""
        used = self.repository.count_for_user(user_id)
        return UserQuota.from_count(used, self.limit)

    def can_generate(self, user_id: str) -> bool:
        return not self.get_quota(user_id).has_reached_limit

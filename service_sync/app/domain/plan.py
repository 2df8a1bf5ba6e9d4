"""
Subscription plan status derived from a cached profile.

The backend enforces quotas; this only describes them. Daily counters are
valid for ``last_activity_day`` only, so a profile last active on an earlier
day has used nothing today.
"""

import time
from dataclasses import dataclass
from typing import Optional

from ..models.domain import UserProfile

SECONDS_PER_DAY = 86_400


def current_day(now: Optional[float] = None) -> int:
    """Day index (days since the Unix epoch, UTC)."""
    return int((time.time() if now is None else now) // SECONDS_PER_DAY)


@dataclass(frozen=True)
class PlanLimits:
    daily_posts: int = 3
    daily_messages: int = 10


@dataclass(frozen=True)
class PlanStatus:
    label: str
    unlimited: bool
    posts_used: int
    messages_used: int
    posts_remaining: Optional[int]
    messages_remaining: Optional[int]
    limits: PlanLimits

    @classmethod
    def from_profile(
        cls,
        profile: UserProfile,
        today: Optional[int] = None,
        limits: PlanLimits = PlanLimits(),
    ) -> "PlanStatus":
        today = current_day() if today is None else today
        if profile.last_activity_day == today:
            posts_used = profile.post_count_daily
            messages_used = profile.message_count_daily
        else:
            posts_used = messages_used = 0

        if profile.is_admin:
            label = "Admin (Pro)"
        elif profile.is_pro:
            label = "Pro"
        else:
            label = "Free"
        unlimited = profile.is_admin or profile.is_pro

        return cls(
            label=label,
            unlimited=unlimited,
            posts_used=posts_used,
            messages_used=messages_used,
            posts_remaining=None if unlimited else max(0, limits.daily_posts - posts_used),
            messages_remaining=None if unlimited else max(0, limits.daily_messages - messages_used),
            limits=limits,
        )

    @property
    def can_post(self) -> bool:
        return self.unlimited or bool(self.posts_remaining)

    @property
    def can_message(self) -> bool:
        return self.unlimited or bool(self.messages_remaining)

"""
Auto-resolution deadline planning.

Every case starts with a 36 hour window; each voter shortens it by four hours
so that a busy panel is not kept waiting. At nine voters the deadline equals
the creation time and the next sweep picks the case up.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

BASE_TIMEOUT_HOURS = 36
HOURS_PER_VOTE = 4


def calculate_timeout_hours(total_votes: int) -> int:
    """Hours between creation and auto-resolution for ``total_votes`` voters."""
    return max(0, BASE_TIMEOUT_HOURS - HOURS_PER_VOTE * total_votes)


def calculate_scheduled_for(created_at: datetime, total_votes: int) -> datetime:
    """Return the auto-resolution deadline of a case created at ``created_at``."""
    return created_at + timedelta(hours=calculate_timeout_hours(total_votes))


def should_auto_resolve(
    created_at: datetime,
    total_votes: int,
    now: Optional[datetime] = None,
) -> bool:
    """Return True once the deadline for ``total_votes`` voters has passed."""
    now = now or datetime.now(timezone.utc)
    return now >= calculate_scheduled_for(created_at, total_votes)

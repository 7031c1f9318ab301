from datetime import datetime, timedelta, timezone

import pytest

from modvote.escalation.planner import (
    calculate_scheduled_for,
    calculate_timeout_hours,
    should_auto_resolve,
)

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "total_votes, hours",
    [(0, 36), (1, 32), (3, 24), (8, 4), (9, 0), (15, 0)],
)
def test_timeout_shrinks_four_hours_per_voter(total_votes: int, hours: int) -> None:
    assert calculate_timeout_hours(total_votes) == hours


def test_scheduled_for_is_relative_to_creation() -> None:
    assert calculate_scheduled_for(CREATED_AT, 2) == CREATED_AT + timedelta(hours=28)
    assert calculate_scheduled_for(CREATED_AT, 20) == CREATED_AT


def test_should_auto_resolve_at_and_after_deadline() -> None:
    deadline = CREATED_AT + timedelta(hours=32)

    assert should_auto_resolve(CREATED_AT, 1, now=deadline - timedelta(seconds=1)) is False
    assert should_auto_resolve(CREATED_AT, 1, now=deadline) is True
    assert should_auto_resolve(CREATED_AT, 9, now=CREATED_AT) is True

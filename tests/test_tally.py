from datetime import datetime, timezone

from modvote.datatypes.escalation_datatypes import Resolution, VoteRecord
from modvote.escalation.tally import tally_votes

VOTED_AT = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _vote(voter_id: str, vote: Resolution) -> VoteRecord:
    return VoteRecord(id=f"{voter_id}-{vote}", escalation_id="esc", voter_id=voter_id, vote=vote, voted_at=VOTED_AT)


def test_empty_tally_has_no_leader() -> None:
    tally = tally_votes([])

    assert tally.leader is None
    assert tally.leader_count == 0
    assert tally.total_votes == 0
    assert tally.counts == {}
    assert not tally.is_tied


def test_leader_is_resolution_with_most_votes() -> None:
    tally = tally_votes([
        _vote("a", Resolution.KICK),
        _vote("b", Resolution.KICK),
        _vote("c", Resolution.WARNING),
    ])

    assert tally.leader is Resolution.KICK
    assert tally.leader_count == 2
    assert tally.count_for(Resolution.WARNING) == 1
    assert tally.count_for(Resolution.BAN) == 0
    assert tally.voters[Resolution.KICK] == ["a", "b"]


def test_tie_goes_to_least_severe_resolution() -> None:
    tally = tally_votes([
        _vote("a", Resolution.BAN),
        _vote("b", Resolution.WARNING),
        _vote("c", Resolution.TIMEOUT),
        _vote("d", Resolution.BAN),
        _vote("e", Resolution.WARNING),
    ])

    assert tally.leader is Resolution.WARNING
    assert tally.is_tied
    assert tally.tied_resolutions == [Resolution.WARNING, Resolution.BAN]


def test_voter_backing_several_resolutions_counts_once_in_total() -> None:
    tally = tally_votes([
        _vote("a", Resolution.NUDGE),
        _vote("a", Resolution.WARNING),
        _vote("b", Resolution.WARNING),
    ])

    assert tally.total_votes == 2
    assert sum(tally.counts.values()) == 3
    assert tally.leader is Resolution.WARNING

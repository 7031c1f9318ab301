"""
Vote tallying.

Turns the active vote records of one escalation into a ranked
:class:`VoteTally`. A voter backing two resolutions counts once in each
resolution's bucket but only once towards ``total_votes``.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from modvote.datatypes.escalation_datatypes import Resolution, VoteRecord, VoteTally


def tally_votes(records: Iterable[VoteRecord]) -> VoteTally:
    """Group votes by resolution and pick the leader.

    Ties go to the least severe of the tied resolutions.
    """
    voters: Dict[Resolution, List[str]] = {}
    distinct_voters = set()

    for record in records:
        voters.setdefault(record.vote, []).append(record.voter_id)
        distinct_voters.add(record.voter_id)

    counts = {resolution: len(ids) for resolution, ids in voters.items()}
    if not counts:
        return VoteTally()

    leader_count = max(counts.values())
    tied = sorted(
        (resolution for resolution, count in counts.items() if count == leader_count),
        key=lambda resolution: resolution.severity,
    )

    return VoteTally(
        counts=counts,
        voters=voters,
        leader=tied[0],
        leader_count=leader_count,
        total_votes=len(distinct_voters),
        tied_resolutions=tied,
    )

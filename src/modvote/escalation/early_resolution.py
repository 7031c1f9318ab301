"""
Early resolution rules.

Decides after each vote whether an escalation should resolve right away
instead of waiting for its deadline.
"""

from __future__ import annotations

from modvote.datatypes.escalation_datatypes import VoteTally, VotingStrategy


def _simple_quorum_reached(tally: VoteTally, quorum: int) -> bool:
    return tally.leader is not None and tally.count_for(tally.leader) >= quorum


def should_trigger_early_resolution(
    tally: VoteTally,
    quorum: int,
    strategy: "VotingStrategy | str | None",
) -> bool:
    """Return True when the vote should resolve now.

    ``simple`` resolves as soon as the leader holds ``quorum`` votes.
    ``majority`` always waits for the deadline and lets the sweep apply the
    plurality leader. Anything else is treated as ``simple``.
    """
    strategy = VotingStrategy.parse(strategy)

    if strategy is VotingStrategy.MAJORITY:
        return False
    return _simple_quorum_reached(tally, quorum)

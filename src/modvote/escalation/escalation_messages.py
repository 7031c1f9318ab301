"""
Text rendering for escalation vote messages.

Everything here is a pure function of the escalation and its tally so the
cog can re-render the vote message after every change and tests can check
the wording without Discord.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from modvote.datatypes.escalation_datatypes import (
    Escalation,
    Resolution,
    ResolutionEvent,
    ResolutionSource,
    VoteTally,
    VotingStrategy,
)


def discord_timestamp(moment: datetime, style: str = "R") -> str:
    """Render a Discord ``<t:...>`` timestamp tag."""
    return f"<t:{int(moment.timestamp())}:{style}>"


def build_votes_list_content(tally: VoteTally) -> str:
    """List who voted for what, most lenient resolution first."""
    if tally.total_votes == 0:
        return ""

    lines = ["-# Vote record:"]
    for resolution in sorted(tally.voters, key=lambda r: r.severity):
        voters = tally.voters[resolution]
        if voters:
            mentions = ", ".join(f"<@{voter_id}>" for voter_id in voters)
            lines.append(f"-# • {resolution.label}: {mentions}")
    return "\n".join(lines)


def build_status_line(escalation: Escalation, tally: VoteTally) -> str:
    """One-line summary of where the vote stands."""
    deadline = escalation.scheduled_for

    if escalation.voting_strategy is VotingStrategy.MAJORITY:
        if tally.total_votes == 0:
            if deadline:
                return f"Majority voting. Resolves {discord_timestamp(deadline)} with a plurality of participants."
            return "Majority voting. Waiting for votes."
        tie_note = " (tied, the most lenient option wins)" if tally.is_tied else ""
        status = f"Leading: {tally.leader.label} ({tally.leader_count} votes){tie_note}."
        if deadline:
            status += f" Resolves {discord_timestamp(deadline)}."
        return status

    if tally.leader is not None and tally.leader_count >= escalation.quorum:
        return f"Quorum reached. Leading: {tally.leader.label} ({tally.leader_count} votes)"

    status = f"{tally.total_votes} voter(s), quorum at {escalation.quorum}."
    if tally.leader is not None and deadline:
        if tally.is_tied:
            tied = ", ".join(r.label for r in tally.tied_resolutions)
            status += f" Tied between {tied}; resolves as `{tally.leader}` {discord_timestamp(deadline)} if no more votes."
        else:
            status += f" Auto-resolves with `{tally.leader}` {discord_timestamp(deadline)} if no more votes."
    return status


def build_vote_message_content(
    escalation: Escalation,
    tally: VoteTally,
    moderator_role_id: Optional[str] = None,
) -> str:
    """Full body of the vote message while the case is open."""
    panel = f"<@&{moderator_role_id}>" if moderator_role_id else "the moderators"
    strategy_label = " (majority)" if escalation.voting_strategy is VotingStrategy.MAJORITY else ""

    header = (
        f"<@{escalation.initiator_id}> called for a vote{strategy_label} by {panel} "
        f"{discord_timestamp(escalation.created_at)} regarding user <@{escalation.reported_user_id}>"
    )
    votes = build_votes_list_content(tally) or "_No votes yet_"
    return f"{header}\n{build_status_line(escalation, tally)}\n\n{votes}"


def build_resolved_message_content(event: ResolutionEvent, reported_user_name: Optional[str] = None) -> str:
    """Notice posted once a case reaches its terminal state."""
    escalation = event.escalation
    vote_rows = sum(event.tally.counts.values())
    elapsed_hours = int((event.resolved_at - escalation.created_at).total_seconds() // 3600)
    name = reported_user_name or "no user"

    notice = (
        f"Resolved with {vote_rows} votes from {event.tally.total_votes} voters: "
        f"**{event.resolution.label}** <@{escalation.reported_user_id}> ({name})"
    )
    if event.source is ResolutionSource.EXPEDITE and event.resolved_by:
        timing = f"-# Resolved early by <@{event.resolved_by}> {discord_timestamp(event.resolved_at, 'f')}"
    elif event.source is ResolutionSource.QUORUM:
        timing = f"-# Quorum reached {discord_timestamp(event.resolved_at, 's')}, {elapsed_hours}hrs after escalation"
    else:
        timing = f"-# Resolved {discord_timestamp(event.resolved_at, 's')}, {elapsed_hours}hrs after escalation"
    if event.user_gone_reason:
        timing += f" ({event.user_gone_reason})"

    votes = build_votes_list_content(event.tally)
    return f"{notice}\n{timing}" + (f"\n\n{votes}" if votes else "")


def button_label(resolution: Resolution, tally: VoteTally) -> str:
    count = tally.count_for(resolution)
    return f"{resolution.label} ({count})" if count else resolution.label

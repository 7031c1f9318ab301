from datetime import datetime, timedelta, timezone

from modvote.datatypes.escalation_datatypes import (
    Resolution,
    ResolutionEvent,
    ResolutionSource,
    VoteRecord,
    VotingStrategy,
)
from modvote.escalation.escalation_messages import (
    build_resolved_message_content,
    build_status_line,
    build_vote_message_content,
    build_votes_list_content,
    button_label,
    discord_timestamp,
)
from modvote.escalation.tally import tally_votes

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _tally(*votes: tuple[str, Resolution]):
    return tally_votes(
        VoteRecord(id=f"{voter}{vote}", escalation_id="esc-1", voter_id=voter, vote=vote, voted_at=CREATED_AT)
        for voter, vote in votes
    )


def test_discord_timestamp() -> None:
    assert discord_timestamp(CREATED_AT) == f"<t:{int(CREATED_AT.timestamp())}:R>"
    assert discord_timestamp(CREATED_AT, "f").endswith(":f>")


def test_votes_list_orders_by_severity() -> None:
    content = build_votes_list_content(_tally(("1", Resolution.BAN), ("2", Resolution.NUDGE), ("3", Resolution.BAN)))

    assert content.splitlines() == [
        "-# Vote record:",
        "-# • Nudge: <@2>",
        "-# • Ban: <@1>, <@3>",
    ]
    assert build_votes_list_content(_tally()) == ""


def test_status_line_before_quorum_mentions_deadline(make_escalation) -> None:
    escalation = make_escalation(scheduled_for=CREATED_AT + timedelta(hours=32))

    line = build_status_line(escalation, _tally(("1", Resolution.KICK)))

    assert line.startswith("1 voter(s), quorum at 3.")
    assert "Auto-resolves with `kick`" in line
    assert discord_timestamp(escalation.scheduled_for) in line


def test_status_line_when_quorum_reached(make_escalation) -> None:
    tally = _tally(("1", Resolution.KICK), ("2", Resolution.KICK), ("3", Resolution.KICK))

    assert build_status_line(make_escalation(), tally) == "Quorum reached. Leading: Kick (3 votes)"


def test_status_line_for_majority_tie(make_escalation) -> None:
    escalation = make_escalation(voting_strategy=VotingStrategy.MAJORITY)

    line = build_status_line(escalation, _tally(("1", Resolution.BAN), ("2", Resolution.WARNING)))

    assert line.startswith("Leading: Formal Warning (1 votes)")
    assert "most lenient" in line


def test_vote_message_mentions_panel_and_user(make_escalation) -> None:
    content = build_vote_message_content(make_escalation(), _tally(), moderator_role_id="900")

    assert content.startswith("<@7> called for a vote by <@&900>")
    assert "regarding user <@42>" in content
    assert content.endswith("_No votes yet_")


def test_resolved_message_for_expedite(make_escalation) -> None:
    tally = _tally(("1", Resolution.TIMEOUT), ("1", Resolution.NUDGE), ("2", Resolution.TIMEOUT))
    resolved_at = CREATED_AT + timedelta(hours=5)
    event = ResolutionEvent(
        escalation=make_escalation(),
        resolution=Resolution.TIMEOUT,
        tally=tally,
        source=ResolutionSource.EXPEDITE,
        resolved_at=resolved_at,
        resolved_by="1",
    )

    content = build_resolved_message_content(event, reported_user_name="troll")

    first, second = content.splitlines()[:2]
    assert first == "Resolved with 3 votes from 2 voters: **Timeout Overnight** <@42> (troll)"
    assert second.startswith("-# Resolved early by <@1>")


def test_resolved_message_for_sweep_without_votes(make_escalation) -> None:
    event = ResolutionEvent(
        escalation=make_escalation(),
        resolution=Resolution.TRACK,
        tally=_tally(),
        source=ResolutionSource.SWEEP,
        resolved_at=CREATED_AT + timedelta(hours=36),
    )

    content = build_resolved_message_content(event)

    assert content.splitlines()[0] == "Resolved with 0 votes from 0 voters: **No action (abstain)** <@42> (no user)"
    assert "36hrs after escalation" in content


def test_button_label_shows_count_only_when_voted() -> None:
    tally = _tally(("1", Resolution.KICK))

    assert button_label(Resolution.KICK, tally) == "Kick (1)"
    assert button_label(Resolution.BAN, tally) == "Ban"


def test_resolved_message_notes_gone_user(make_escalation) -> None:
    event = ResolutionEvent(
        escalation=make_escalation(),
        resolution=Resolution.TRACK,
        tally=_tally(("1", Resolution.BAN)),
        source=ResolutionSource.SWEEP,
        resolved_at=CREATED_AT + timedelta(hours=32),
        user_gone_reason="account no longer exists",
    )

    timing = build_resolved_message_content(event).splitlines()[1]

    assert timing.endswith("32hrs after escalation (account no longer exists)")

from datetime import datetime, timedelta, timezone

import pytest

from modvote.datatypes.escalation_datatypes import (
    Resolution,
    ResolutionSource,
    VotingStrategy,
)
from modvote.escalation.errors import (
    AlreadyResolvedError,
    NoLeaderError,
    NotAuthorizedError,
)
from modvote.escalation.escalation_service import EscalationService
from modvote.escalation.escalation_store import EscalationStore
from modvote.escalation.vote_recorder import VoteRecorder

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
MOD = ["900"]


@pytest.mark.asyncio
async def test_create_applies_configured_defaults(store: EscalationStore, escalation_data) -> None:
    service = EscalationService(store, MOD, default_quorum=5, default_voting_strategy=VotingStrategy.MAJORITY)

    defaulted = await service.create_escalation(escalation_data(), now=CREATED_AT)
    explicit = await service.create_escalation(
        escalation_data(quorum=2, voting_strategy=VotingStrategy.SIMPLE), now=CREATED_AT
    )

    assert defaulted.quorum == 5
    assert defaulted.voting_strategy is VotingStrategy.MAJORITY
    assert defaulted.scheduled_for == CREATED_AT + timedelta(hours=36)
    assert explicit.quorum == 2
    assert explicit.voting_strategy is VotingStrategy.SIMPLE


@pytest.mark.asyncio
async def test_expedite_resolves_with_leader(store: EscalationStore, open_case) -> None:
    service = EscalationService(store, MOD)
    await store.insert_vote(open_case.id, "m1", Resolution.TIMEOUT)
    await store.insert_vote(open_case.id, "m2", Resolution.TIMEOUT)
    await store.insert_vote(open_case.id, "m3", Resolution.NUDGE)
    now = CREATED_AT + timedelta(hours=2)

    event = await service.expedite(open_case.id, "m1", MOD, now=now)

    assert event.resolution is Resolution.TIMEOUT
    assert event.source is ResolutionSource.EXPEDITE
    assert event.resolved_by == "m1"
    assert event.tally.total_votes == 3
    stored = await store.get(open_case.id)
    assert stored.resolution is Resolution.TIMEOUT
    assert stored.resolved_at == now


@pytest.mark.asyncio
async def test_expedite_without_votes_raises_no_leader(store: EscalationStore, open_case) -> None:
    service = EscalationService(store, MOD)

    with pytest.raises(NoLeaderError) as excinfo:
        await service.expedite(open_case.id, "m1", MOD)

    assert "no votes" in excinfo.value.user_message
    assert (await store.get(open_case.id)).is_resolved is False


@pytest.mark.asyncio
async def test_expedite_requires_moderator(store: EscalationStore, open_case) -> None:
    service = EscalationService(store, MOD)
    await store.insert_vote(open_case.id, "m1", Resolution.KICK)

    with pytest.raises(NotAuthorizedError) as excinfo:
        await service.expedite(open_case.id, "u1", ["1"])

    assert excinfo.value.user_message == "Only moderators can expedite escalations."
    assert (await store.get(open_case.id)).is_resolved is False


@pytest.mark.asyncio
async def test_expedite_resolved_case_is_rejected(store: EscalationStore, open_case) -> None:
    service = EscalationService(store, MOD)
    await store.insert_vote(open_case.id, "m1", Resolution.KICK)
    await store.resolve(open_case.id, Resolution.TRACK, CREATED_AT)

    with pytest.raises(AlreadyResolvedError):
        await service.expedite(open_case.id, "m1", MOD)

    assert (await store.get(open_case.id)).resolution is Resolution.TRACK


@pytest.mark.asyncio
async def test_require_majority_disables_early_resolution(store: EscalationStore, open_case) -> None:
    service = EscalationService(store, MOD)
    recorder = VoteRecorder(store, MOD)
    await recorder.cast_vote(open_case.id, "m1", Resolution.BAN, MOD, now=CREATED_AT)

    upgraded = await service.require_majority(open_case.id, MOD, "m1")

    assert upgraded.voting_strategy is VotingStrategy.MAJORITY
    assert upgraded.scheduled_for == CREATED_AT + timedelta(hours=32)
    assert (await store.get(open_case.id)).voting_strategy is VotingStrategy.MAJORITY

    await recorder.cast_vote(open_case.id, "m2", Resolution.BAN, MOD, now=CREATED_AT)
    outcome = await recorder.cast_vote(open_case.id, "m3", Resolution.BAN, MOD, now=CREATED_AT)
    assert outcome.resolved is False


@pytest.mark.asyncio
async def test_require_majority_on_resolved_case_is_rejected(store: EscalationStore, open_case) -> None:
    service = EscalationService(store, MOD)
    await store.resolve(open_case.id, Resolution.TRACK, CREATED_AT)

    with pytest.raises(AlreadyResolvedError):
        await service.require_majority(open_case.id, MOD)

    assert (await store.get(open_case.id)).voting_strategy is VotingStrategy.SIMPLE

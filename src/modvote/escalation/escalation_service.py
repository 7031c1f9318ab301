"""
Case lifecycle operations around the vote itself.

- ``create_escalation``: opens a case with the configured defaults.
- ``expedite``: a moderator resolves an open case right away with the
  current leader.
- ``require_majority``: switches an open case to majority voting, which
  disables early resolution and lets the deadline decide.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from modvote.datatypes.escalation_datatypes import (
    CreateEscalationData,
    Escalation,
    ResolutionEvent,
    ResolutionSource,
    VotingStrategy,
)
from modvote.escalation.errors import AlreadyResolvedError, NoLeaderError
from modvote.escalation.escalation_store import EscalationStore, utcnow
from modvote.escalation.permissions import require_moderator
from modvote.escalation.planner import calculate_scheduled_for
from modvote.escalation.tally import tally_votes
from modvote.util.logger import get_logger

logger = get_logger("escalation_service")


class EscalationService:
    """Creates escalations and applies moderator overrides to open ones."""

    def __init__(
        self,
        store: EscalationStore,
        moderator_roles: Iterable[object],
        default_quorum: int = 3,
        default_voting_strategy: VotingStrategy = VotingStrategy.SIMPLE,
    ) -> None:
        self._store = store
        self._moderator_roles = frozenset(str(role) for role in moderator_roles)
        self._default_quorum = default_quorum
        self._default_voting_strategy = default_voting_strategy

    async def create_escalation(
        self,
        data: CreateEscalationData,
        now: Optional[datetime] = None,
    ) -> Escalation:
        """Open a new case. Unset quorum or strategy fall back to the defaults."""
        quorum = data.quorum if data.quorum and data.quorum > 0 else self._default_quorum
        strategy = VotingStrategy.parse(data.voting_strategy or self._default_voting_strategy)
        return await self._store.create(data, quorum=quorum, voting_strategy=strategy, now=now)

    async def expedite(
        self,
        escalation_id: str,
        caller_id: str,
        caller_roles: Iterable[object],
        now: Optional[datetime] = None,
    ) -> ResolutionEvent:
        """
        Resolve an open case immediately with its current leader.

        Raises:
            NotAuthorizedError, NotFoundError, AlreadyResolvedError,
            NoLeaderError: nobody has voted yet.
        """
        require_moderator(caller_roles, self._moderator_roles, "expedite", caller_id)

        escalation = await self._store.get(escalation_id)
        if escalation.is_resolved:
            raise AlreadyResolvedError(escalation_id, escalation.resolved_at)

        tally = tally_votes(await self._store.list_votes(escalation_id))
        if tally.leader is None:
            raise NoLeaderError(escalation_id)

        now = now or utcnow()
        if not await self._store.resolve(escalation_id, tally.leader, now):
            # Lost the race against a vote or the sweep
            current = await self._store.get(escalation_id)
            raise AlreadyResolvedError(escalation_id, current.resolved_at)

        escalation.resolved_at = now
        escalation.resolution = tally.leader
        logger.info(
            "[ESCALATION SERVICE] %s expedited escalation %s as %s (%d voters)",
            caller_id, escalation_id, tally.leader, tally.total_votes,
        )
        return ResolutionEvent(
            escalation=escalation,
            resolution=tally.leader,
            tally=tally,
            source=ResolutionSource.EXPEDITE,
            resolved_at=now,
            resolved_by=str(caller_id),
        )

    async def require_majority(
        self,
        escalation_id: str,
        caller_roles: Iterable[object],
        caller_id: Optional[str] = None,
    ) -> Escalation:
        """Switch an open case to majority voting and refresh its deadline."""
        require_moderator(caller_roles, self._moderator_roles, "escalate", caller_id)

        escalation = await self._store.get(escalation_id)
        if escalation.is_resolved:
            raise AlreadyResolvedError(escalation_id, escalation.resolved_at)

        tally = tally_votes(await self._store.list_votes(escalation_id))
        scheduled_for = calculate_scheduled_for(escalation.created_at, tally.total_votes)

        if not await self._store.update_voting_strategy(escalation_id, VotingStrategy.MAJORITY):
            current = await self._store.get(escalation_id)
            raise AlreadyResolvedError(escalation_id, current.resolved_at)
        await self._store.update_scheduled_for(escalation_id, scheduled_for)

        escalation.voting_strategy = VotingStrategy.MAJORITY
        escalation.scheduled_for = scheduled_for
        logger.info("[ESCALATION SERVICE] Escalation %s upgraded to majority voting", escalation_id)
        return escalation

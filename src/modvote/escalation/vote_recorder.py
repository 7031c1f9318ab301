"""
Vote casting.

:class:`VoteRecorder` handles one vote-cast request from start to finish:
authorization, terminal-state check, atomic toggle, tally and deadline
recomputation, and the early-resolution attempt when quorum is met. It never
talks to Discord; the caller renders the returned :class:`VoteOutcome`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from modvote.datatypes.escalation_datatypes import (
    Resolution,
    VoteMode,
    VoteOutcome,
    VoteToggle,
)
from modvote.escalation.early_resolution import should_trigger_early_resolution
from modvote.escalation.errors import AlreadyResolvedError, StorageError
from modvote.escalation.escalation_store import EscalationStore, utcnow
from modvote.escalation.permissions import require_moderator
from modvote.escalation.planner import calculate_scheduled_for
from modvote.escalation.tally import tally_votes
from modvote.util.logger import get_logger

logger = get_logger("vote_recorder")


class VoteRecorder:
    """
    Records moderator votes on escalations.

    Args:
        store: Escalation persistence.
        moderator_roles: Role IDs that grant the right to vote.
        vote_mode: ``multi`` lets a voter back several resolutions at once,
            ``single`` makes a new vote replace the voter's previous one.
    """

    def __init__(
        self,
        store: EscalationStore,
        moderator_roles: Iterable[object],
        vote_mode: VoteMode = VoteMode.MULTI,
    ) -> None:
        self._store = store
        self._moderator_roles = frozenset(str(role) for role in moderator_roles)
        self._vote_mode = vote_mode

    async def cast_vote(
        self,
        escalation_id: str,
        voter_id: str,
        vote: Resolution,
        caller_roles: Iterable[object],
        now: Optional[datetime] = None,
    ) -> VoteOutcome:
        """
        Toggle ``voter_id``'s vote for ``vote`` and re-evaluate the case.

        Raises:
            NotAuthorizedError: caller holds no moderator role.
            NotFoundError: unknown escalation.
            AlreadyResolvedError: the case is terminal; nothing was changed.
            StorageError: persistence failed. If this happens after the toggle
                the vote stays recorded; only the bookkeeping lags.
        """
        voter_id = str(voter_id)
        require_moderator(caller_roles, self._moderator_roles, "vote", voter_id)

        escalation = await self._store.get(escalation_id)
        if escalation.is_resolved:
            raise AlreadyResolvedError(escalation_id, escalation.resolved_at)

        now = now or utcnow()
        toggle = await self._store.toggle_vote(escalation_id, voter_id, vote, self._vote_mode, now)

        try:
            tally = tally_votes(await self._store.list_votes(escalation_id))
            scheduled_for = calculate_scheduled_for(escalation.created_at, tally.total_votes)
            await self._store.update_scheduled_for(escalation_id, scheduled_for)
        except StorageError:
            logger.error(
                "[VOTE RECORDER] Vote %s by %s on %s is recorded but tally/deadline update failed",
                vote, voter_id, escalation_id,
            )
            raise

        escalation.scheduled_for = scheduled_for
        early_resolution = should_trigger_early_resolution(
            tally, escalation.quorum, escalation.voting_strategy
        )

        resolved = False
        if early_resolution and tally.leader is not None:
            resolved = await self._store.resolve(escalation_id, tally.leader, now)
            if resolved:
                escalation.resolved_at = now
                escalation.resolution = tally.leader

        logger.info(
            "[VOTE RECORDER] %s %s on %s: voters=%d leader=%s early=%s resolved=%s",
            voter_id,
            "withdrew" if toggle is VoteToggle.WITHDRAWN else f"voted {vote}",
            escalation_id, tally.total_votes, tally.leader, early_resolution, resolved,
        )

        return VoteOutcome(
            escalation=escalation,
            tally=tally,
            scheduled_for=scheduled_for,
            withdrawn=toggle is VoteToggle.WITHDRAWN,
            early_resolution=early_resolution,
            resolved=resolved,
            resolution=tally.leader if resolved else None,
        )

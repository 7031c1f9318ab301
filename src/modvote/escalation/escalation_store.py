"""
Persistence contract for escalations and votes.

Wraps :class:`EscalationRepo` in serialised write transactions, turns
missing rows into :class:`NotFoundError` and driver failures into
:class:`StorageError`.

Two operations carry the engine's concurrency guarantees:

- ``toggle_vote`` deletes or inserts the ``(escalation, voter, vote)`` row in
  one transaction, backed by a UNIQUE constraint, so rapid double clicks can
  never leave a duplicate or a lost update behind.
- ``resolve`` is a single conditional UPDATE; only the caller whose write
  applied gets ``True`` back.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

import aiosqlite

from modvote.database.db_connection import ConnectionManager, db_connection
from modvote.datatypes.escalation_datatypes import (
    CreateEscalationData,
    Escalation,
    Resolution,
    VoteMode,
    VoteRecord,
    VoteToggle,
    VotingStrategy,
)
from modvote.escalation.errors import AlreadyResolvedError, NotFoundError, StorageError
from modvote.escalation.planner import calculate_scheduled_for
from modvote.repositories.escalation_repo import escalation_repo
from modvote.util.logger import get_logger

logger = get_logger("escalation_store")


def utcnow() -> datetime:
    # Storage keeps whole seconds; trimming here keeps in-memory copies equal to stored ones
    return datetime.now(timezone.utc).replace(microsecond=0)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except aiosqlite.Error as exc:
        logger.error("[ESCALATION STORE] %s failed: %s", operation, exc)
        raise StorageError(operation, exc) from exc


class EscalationStore:
    """Async store for escalation cases and their vote records."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._db = connection

    # ------------------------------------------------------------------
    # Escalations
    # ------------------------------------------------------------------

    async def create(
        self,
        data: CreateEscalationData,
        *,
        quorum: int,
        voting_strategy: VotingStrategy,
        now: Optional[datetime] = None,
    ) -> Escalation:
        """Insert a new open case with the default 36 hour window."""
        created_at = now or utcnow()
        escalation = Escalation(
            id=data.id or str(uuid.uuid4()),
            guild_id=str(data.guild_id),
            thread_id=str(data.thread_id),
            vote_message_id=str(data.vote_message_id),
            reported_user_id=str(data.reported_user_id),
            initiator_id=str(data.initiator_id),
            quorum=quorum,
            voting_strategy=voting_strategy,
            created_at=created_at,
            scheduled_for=calculate_scheduled_for(created_at, 0),
        )

        with _storage_errors("create"):
            async with self._db.transaction() as conn:
                await escalation_repo.insert_escalation(conn, escalation)

        logger.info(
            "[ESCALATION STORE] Created escalation %s for user %s in guild %s (quorum=%d, strategy=%s)",
            escalation.id, escalation.reported_user_id, escalation.guild_id,
            escalation.quorum, escalation.voting_strategy,
        )
        return escalation

    async def get(self, escalation_id: str) -> Escalation:
        """Return the case or raise :class:`NotFoundError`."""
        with _storage_errors("get"):
            async with self._db.read() as conn:
                escalation = await escalation_repo.get(conn, escalation_id)
        if escalation is None:
            raise NotFoundError(escalation_id)
        return escalation

    async def list_pending(self) -> List[Escalation]:
        with _storage_errors("list_pending"):
            async with self._db.read() as conn:
                return await escalation_repo.list_pending(conn)

    async def list_due(self, now: Optional[datetime] = None) -> List[Escalation]:
        now = now or utcnow()
        with _storage_errors("list_due"):
            async with self._db.read() as conn:
                due = await escalation_repo.list_due(conn, now)
        logger.debug("[ESCALATION STORE] Found %d due escalations", len(due))
        return due

    async def update_scheduled_for(self, escalation_id: str, scheduled_for: datetime) -> bool:
        """Persist a new deadline. No-op (False) once the case is resolved."""
        with _storage_errors("update_scheduled_for"):
            async with self._db.transaction() as conn:
                updated = await escalation_repo.update_scheduled_for(conn, escalation_id, scheduled_for)
        logger.debug(
            "[ESCALATION STORE] scheduled_for of %s -> %s (%s)",
            escalation_id, scheduled_for.isoformat(), "updated" if updated else "unchanged",
        )
        return updated

    async def update_voting_strategy(self, escalation_id: str, strategy: VotingStrategy) -> bool:
        with _storage_errors("update_voting_strategy"):
            async with self._db.transaction() as conn:
                updated = await escalation_repo.update_voting_strategy(conn, escalation_id, strategy)
        if updated:
            logger.info("[ESCALATION STORE] Escalation %s now uses %s voting", escalation_id, strategy)
        return updated

    async def resolve(
        self,
        escalation_id: str,
        resolution: Resolution,
        now: Optional[datetime] = None,
    ) -> bool:
        """Move the case to its terminal state if nobody else did first."""
        with _storage_errors("resolve"):
            async with self._db.transaction() as conn:
                applied = await escalation_repo.resolve(conn, escalation_id, resolution, now or utcnow())

        if applied:
            logger.info("[ESCALATION STORE] Resolved escalation %s as %s", escalation_id, resolution)
        else:
            logger.debug("[ESCALATION STORE] Escalation %s was already resolved; %s not applied", escalation_id, resolution)
        return applied

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def insert_vote(
        self,
        escalation_id: str,
        voter_id: str,
        vote: Resolution,
        now: Optional[datetime] = None,
    ) -> bool:
        """Add a vote to an open case. False if it already existed or the case is closed."""
        record = VoteRecord(
            id=str(uuid.uuid4()),
            escalation_id=escalation_id,
            voter_id=str(voter_id),
            vote=vote,
            voted_at=now or utcnow(),
        )
        with _storage_errors("insert_vote"):
            async with self._db.transaction() as conn:
                return await escalation_repo.insert_vote(conn, record)

    async def delete_vote(self, escalation_id: str, voter_id: str, vote: Resolution) -> bool:
        with _storage_errors("delete_vote"):
            async with self._db.transaction() as conn:
                return await escalation_repo.delete_vote(conn, escalation_id, str(voter_id), vote)

    async def toggle_vote(
        self,
        escalation_id: str,
        voter_id: str,
        vote: Resolution,
        mode: VoteMode = VoteMode.MULTI,
        now: Optional[datetime] = None,
    ) -> VoteToggle:
        """
        Atomically withdraw an existing vote or record a new one.

        In ``single`` mode a new vote also removes the voter's votes for other
        resolutions. Raises :class:`AlreadyResolvedError` (with no row
        changed) when the case was resolved before the toggle could apply, or
        :class:`NotFoundError` when it does not exist.
        """
        voter_id = str(voter_id)
        record = VoteRecord(
            id=str(uuid.uuid4()),
            escalation_id=escalation_id,
            voter_id=voter_id,
            vote=vote,
            voted_at=now or utcnow(),
        )

        with _storage_errors("toggle_vote"):
            async with self._db.transaction() as conn:
                if await escalation_repo.delete_vote(conn, escalation_id, voter_id, vote):
                    result = VoteToggle.WITHDRAWN
                else:
                    if mode is VoteMode.SINGLE:
                        await escalation_repo.delete_votes_by_voter(conn, escalation_id, voter_id)
                    if not await escalation_repo.insert_vote(conn, record):
                        current = await escalation_repo.get(conn, escalation_id)
                        if current is None:
                            raise NotFoundError(escalation_id)
                        if current.is_resolved:
                            raise AlreadyResolvedError(escalation_id, current.resolved_at)
                        # Another process recorded the same vote first; the row exists either way
                        logger.warning(
                            "[ESCALATION STORE] Vote %s by %s on %s was recorded concurrently",
                            vote, voter_id, escalation_id,
                        )
                    result = VoteToggle.ADDED

        logger.info(
            "[ESCALATION STORE] %s vote %s by %s on escalation %s",
            "Withdrew" if result is VoteToggle.WITHDRAWN else "Recorded",
            vote, voter_id, escalation_id,
        )
        return result

    async def list_votes(self, escalation_id: str) -> List[VoteRecord]:
        with _storage_errors("list_votes"):
            async with self._db.read() as conn:
                return await escalation_repo.list_votes(conn, escalation_id)


# Module-level singleton bound to the shared connection
escalation_store = EscalationStore()

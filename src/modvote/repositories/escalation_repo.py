"""
Low-level SQL for the ``escalations`` and ``escalation_records`` tables.

Timestamps are stored as INTEGER unix seconds (UTC) so deadline comparisons
are plain integer comparisons. Every statement that mutates votes or the
deadline is conditional on the case still being open, which keeps resolved
cases immutable even when a write races a resolution.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import aiosqlite

from modvote.datatypes.escalation_datatypes import (
    Escalation,
    Resolution,
    VoteRecord,
    VotingStrategy,
)
from modvote.util.logger import get_logger

logger = get_logger("escalation_repo")

_ESCALATION_COLUMNS = (
    "id, guild_id, thread_id, vote_message_id, reported_user_id, initiator_id, "
    "quorum, voting_strategy, created_at, scheduled_for, resolved_at, resolution"
)

_CASE_IS_OPEN = "EXISTS (SELECT 1 FROM escalations WHERE id = ? AND resolved_at IS NULL)"


def to_unix(moment: datetime) -> int:
    """Convert an aware (or UTC-naive) datetime to unix seconds."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def from_unix(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _row_to_escalation(row: aiosqlite.Row) -> Escalation:
    resolution = row["resolution"]
    return Escalation(
        id=row["id"],
        guild_id=row["guild_id"],
        thread_id=row["thread_id"],
        vote_message_id=row["vote_message_id"],
        reported_user_id=row["reported_user_id"],
        initiator_id=row["initiator_id"],
        quorum=int(row["quorum"]),
        voting_strategy=VotingStrategy.parse(row["voting_strategy"]),
        created_at=from_unix(row["created_at"]),
        scheduled_for=from_unix(row["scheduled_for"]),
        resolved_at=from_unix(row["resolved_at"]),
        resolution=Resolution(resolution) if resolution else None,
    )


def _row_to_vote(row: aiosqlite.Row) -> VoteRecord:
    return VoteRecord(
        id=row["id"],
        escalation_id=row["escalation_id"],
        voter_id=row["voter_id"],
        vote=Resolution(row["vote"]),
        voted_at=from_unix(row["voted_at"]),
    )


class EscalationRepo:
    """CRUD for escalations and their vote records."""

    # ------------------------------------------------------------------
    # Escalations: writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert_escalation(conn: aiosqlite.Connection, escalation: Escalation) -> None:
        await conn.execute(
            f"INSERT INTO escalations ({_ESCALATION_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL)",
            (
                escalation.id,
                escalation.guild_id,
                escalation.thread_id,
                escalation.vote_message_id,
                escalation.reported_user_id,
                escalation.initiator_id,
                escalation.quorum,
                escalation.voting_strategy.value,
                to_unix(escalation.created_at),
                to_unix(escalation.scheduled_for) if escalation.scheduled_for else None,
            ),
        )

    @staticmethod
    async def update_scheduled_for(
        conn: aiosqlite.Connection,
        escalation_id: str,
        scheduled_for: datetime,
    ) -> bool:
        """Move the deadline of an open case. Returns False if the case is resolved or missing."""
        cursor = await conn.execute(
            "UPDATE escalations SET scheduled_for = ? WHERE id = ? AND resolved_at IS NULL",
            (to_unix(scheduled_for), escalation_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def update_voting_strategy(
        conn: aiosqlite.Connection,
        escalation_id: str,
        strategy: VotingStrategy,
    ) -> bool:
        cursor = await conn.execute(
            "UPDATE escalations SET voting_strategy = ? WHERE id = ? AND resolved_at IS NULL",
            (strategy.value, escalation_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def resolve(
        conn: aiosqlite.Connection,
        escalation_id: str,
        resolution: Resolution,
        resolved_at: datetime,
    ) -> bool:
        """Conditionally mark a case resolved. True only if this write applied."""
        cursor = await conn.execute(
            "UPDATE escalations SET resolved_at = ?, resolution = ? "
            "WHERE id = ? AND resolved_at IS NULL",
            (to_unix(resolved_at), resolution.value, escalation_id),
        )
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Escalations: reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, escalation_id: str) -> Optional[Escalation]:
        async with conn.execute(
            f"SELECT {_ESCALATION_COLUMNS} FROM escalations WHERE id = ?",
            (escalation_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_escalation(row) if row is not None else None

    @staticmethod
    async def list_pending(conn: aiosqlite.Connection) -> List[Escalation]:
        async with conn.execute(
            f"SELECT {_ESCALATION_COLUMNS} FROM escalations "
            "WHERE resolved_at IS NULL ORDER BY created_at",
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_escalation(row) for row in rows]

    @staticmethod
    async def list_due(conn: aiosqlite.Connection, now: datetime) -> List[Escalation]:
        """Open cases whose deadline is at or before ``now``, oldest deadline first."""
        async with conn.execute(
            f"SELECT {_ESCALATION_COLUMNS} FROM escalations "
            "WHERE resolved_at IS NULL AND scheduled_for <= ? ORDER BY scheduled_for",
            (to_unix(now),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_escalation(row) for row in rows]

    # ------------------------------------------------------------------
    # Vote records
    # ------------------------------------------------------------------

    @staticmethod
    async def insert_vote(
        conn: aiosqlite.Connection,
        record: VoteRecord,
    ) -> bool:
        """Insert a vote if the case is open and the vote is not already present."""
        cursor = await conn.execute(
            "INSERT INTO escalation_records (id, escalation_id, voter_id, vote, voted_at) "
            f"SELECT ?, ?, ?, ?, ? WHERE {_CASE_IS_OPEN} "
            "ON CONFLICT(escalation_id, voter_id, vote) DO NOTHING",
            (
                record.id,
                record.escalation_id,
                record.voter_id,
                record.vote.value,
                to_unix(record.voted_at),
                record.escalation_id,
            ),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def delete_vote(
        conn: aiosqlite.Connection,
        escalation_id: str,
        voter_id: str,
        vote: Resolution,
    ) -> bool:
        """Remove one vote from an open case. Returns True if a row was deleted."""
        cursor = await conn.execute(
            "DELETE FROM escalation_records "
            f"WHERE escalation_id = ? AND voter_id = ? AND vote = ? AND {_CASE_IS_OPEN}",
            (escalation_id, voter_id, vote.value, escalation_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def delete_votes_by_voter(
        conn: aiosqlite.Connection,
        escalation_id: str,
        voter_id: str,
    ) -> int:
        """Remove every vote a voter holds on an open case."""
        cursor = await conn.execute(
            "DELETE FROM escalation_records "
            f"WHERE escalation_id = ? AND voter_id = ? AND {_CASE_IS_OPEN}",
            (escalation_id, voter_id, escalation_id),
        )
        return cursor.rowcount

    @staticmethod
    async def list_votes(conn: aiosqlite.Connection, escalation_id: str) -> List[VoteRecord]:
        async with conn.execute(
            "SELECT id, escalation_id, voter_id, vote, voted_at FROM escalation_records "
            "WHERE escalation_id = ? ORDER BY voted_at, rowid",
            (escalation_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_vote(row) for row in rows]


# Module-level singleton
escalation_repo = EscalationRepo()

"""
Pytest configuration and fixtures for Modvote tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modvote.database.db_connection import ConnectionManager  # noqa: E402
from modvote.datatypes.escalation_datatypes import (  # noqa: E402
    CreateEscalationData,
    Escalation,
    VotingStrategy,
)
from modvote.escalation.escalation_store import EscalationStore  # noqa: E402

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture()
async def connection(tmp_path: Path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "escalations.db")
    yield manager
    await manager.close()


@pytest_asyncio.fixture()
async def store(connection: ConnectionManager) -> EscalationStore:
    return EscalationStore(connection)


@pytest.fixture()
def escalation_data() -> Callable[..., CreateEscalationData]:
    def _make(**overrides: Any) -> CreateEscalationData:
        values = dict(
            guild_id="1",
            reported_user_id="42",
            initiator_id="7",
            thread_id="100",
            vote_message_id="200",
        )
        values.update(overrides)
        return CreateEscalationData(**values)

    return _make


@pytest.fixture()
def make_escalation() -> Callable[..., Escalation]:
    """Build an in-memory escalation without touching the database."""

    def _make(**overrides: Any) -> Escalation:
        values = dict(
            id="esc-1",
            guild_id="1",
            thread_id="100",
            vote_message_id="200",
            reported_user_id="42",
            initiator_id="7",
            quorum=3,
            voting_strategy=VotingStrategy.SIMPLE,
            created_at=CREATED_AT,
            scheduled_for=CREATED_AT + timedelta(hours=36),
        )
        values.update(overrides)
        return Escalation(**values)

    return _make


@pytest_asyncio.fixture()
async def open_case(store: EscalationStore, escalation_data) -> Escalation:
    """An open simple-vote escalation with quorum 3, created at ``CREATED_AT``."""
    return await store.create(
        escalation_data(),
        quorum=3,
        voting_strategy=VotingStrategy.SIMPLE,
        now=CREATED_AT,
    )

"""
Data structures for escalation votes.

This module defines the closed enums (resolutions, voting strategies, vote
modes) and the dataclasses that flow between the escalation store, the voting
rules and the Discord surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class Resolution(Enum):
    """Actions a panel can vote for, declared from least to most severe."""

    TRACK = "track"
    NUDGE = "nudge"
    WARNING = "warning"
    TIMEOUT = "timeout"
    RESTRICT = "restrict"
    KICK = "kick"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value

    @property
    def severity(self) -> int:
        """Position in the severity ordering; 0 is the most lenient."""
        return RESOLUTION_SEVERITY.index(self)

    @property
    def label(self) -> str:
        return RESOLUTION_LABELS[self]


RESOLUTION_SEVERITY: List[Resolution] = list(Resolution)

RESOLUTION_LABELS: Dict[Resolution, str] = {
    Resolution.TRACK: "No action (abstain)",
    Resolution.NUDGE: "Nudge",
    Resolution.WARNING: "Formal Warning",
    Resolution.TIMEOUT: "Timeout Overnight",
    Resolution.RESTRICT: "Restrict",
    Resolution.KICK: "Kick",
    Resolution.BAN: "Ban",
}

# Outcome recorded for cases that reach their deadline without a single vote
NO_ACTION_RESOLUTION = Resolution.TRACK


class VotingStrategy(Enum):
    """How quorum is interpreted for an escalation."""

    SIMPLE = "simple"
    MAJORITY = "majority"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | VotingStrategy | None") -> "VotingStrategy":
        """Map a stored value to a strategy; missing or unknown values mean SIMPLE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.SIMPLE


class VoteMode(Enum):
    """Whether a voter may hold votes for several resolutions at once."""

    MULTI = "multi"
    SINGLE = "single"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | VoteMode | None") -> "VoteMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MULTI


class VoteToggle(Enum):
    """Direction of an atomic vote toggle."""

    ADDED = "added"
    WITHDRAWN = "withdrawn"


class ResolutionSource(Enum):
    """Which path moved an escalation to its terminal state."""

    QUORUM = "quorum"
    SWEEP = "sweep"
    EXPEDITE = "expedite"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class Escalation:
    """One moderation case collecting votes about a reported user.

    Attributes:
        id: Unique identifier (uuid4 string)
        guild_id: Guild the case belongs to
        thread_id: Thread hosting the vote message
        vote_message_id: Message carrying the vote buttons
        reported_user_id: User the vote is about
        initiator_id: Moderator who opened the case
        quorum: Votes one resolution needs for early resolution
        voting_strategy: How quorum is interpreted
        created_at: Creation time (UTC)
        scheduled_for: Auto-resolution deadline, recomputed after each vote
        resolved_at: Set exactly once when the case becomes terminal
        resolution: Outcome, set together with resolved_at
    """
    id: str
    guild_id: str
    thread_id: str
    vote_message_id: str
    reported_user_id: str
    initiator_id: str
    quorum: int
    voting_strategy: VotingStrategy
    created_at: datetime
    scheduled_for: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[Resolution] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


@dataclass(slots=True)
class VoteRecord:
    """A single active vote of one moderator for one resolution."""
    id: str
    escalation_id: str
    voter_id: str
    vote: Resolution
    voted_at: datetime


@dataclass(slots=True)
class CreateEscalationData:
    """Everything the report workflow supplies when opening a case.

    ``quorum`` and ``voting_strategy`` fall back to the configured defaults
    when left unset; ``id`` is generated when not supplied.
    """
    guild_id: str
    reported_user_id: str
    initiator_id: str
    thread_id: str
    vote_message_id: str
    quorum: Optional[int] = None
    voting_strategy: Optional[VotingStrategy] = None
    id: Optional[str] = None


@dataclass(slots=True)
class VoteTally:
    """Ranked summary of the active votes of one escalation."""
    counts: Dict[Resolution, int] = field(default_factory=dict)
    voters: Dict[Resolution, List[str]] = field(default_factory=dict)
    leader: Optional[Resolution] = None
    leader_count: int = 0
    total_votes: int = 0
    tied_resolutions: List[Resolution] = field(default_factory=list)

    @property
    def is_tied(self) -> bool:
        return len(self.tied_resolutions) > 1

    def count_for(self, resolution: Resolution) -> int:
        return self.counts.get(resolution, 0)


@dataclass(slots=True)
class VoteOutcome:
    """Result of one vote cast, handed to the rendering layer."""
    escalation: Escalation
    tally: VoteTally
    scheduled_for: datetime
    withdrawn: bool
    early_resolution: bool
    resolved: bool
    resolution: Optional[Resolution] = None


@dataclass(slots=True)
class ResolutionEvent:
    """Announcement that an escalation reached its terminal state."""
    escalation: Escalation
    resolution: Resolution
    tally: VoteTally
    source: ResolutionSource
    resolved_at: datetime
    resolved_by: Optional[str] = None
    # Set when the reported user left the guild or deleted their account
    user_gone_reason: Optional[str] = None


@dataclass(slots=True)
class SweepSummary:
    """Counters for one pass of the resolution sweep."""
    processed: int = 0
    resolved: int = 0
    skipped: int = 0
    failed: int = 0

"""
Errors raised by the escalation engine.

Every error carries a ``user_message`` the Discord surface can show verbatim,
so a rejected request always tells the moderator why.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class EscalationError(Exception):
    """Base class for all escalation engine failures."""

    user_message = "Something went wrong while handling this escalation."


class NotAuthorizedError(EscalationError):
    """The caller lacks the moderator capability. No state was changed."""

    def __init__(self, operation: str, user_id: Optional[str] = None) -> None:
        self.operation = operation
        self.user_id = user_id
        super().__init__(f"user {user_id} is not allowed to {operation}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        if self.operation == "vote":
            return "Only moderators can vote on escalations."
        return f"Only moderators can {self.operation} escalations."


class NotFoundError(EscalationError):
    """The escalation id does not resolve to a case."""

    user_message = "Escalation not found."

    def __init__(self, escalation_id: str) -> None:
        self.escalation_id = escalation_id
        super().__init__(f"escalation {escalation_id} not found")


class AlreadyResolvedError(EscalationError):
    """The case is terminal; votes and deadline updates are refused."""

    user_message = "This escalation has already been resolved."

    def __init__(self, escalation_id: str, resolved_at: Optional[datetime] = None) -> None:
        self.escalation_id = escalation_id
        self.resolved_at = resolved_at
        super().__init__(f"escalation {escalation_id} already resolved at {resolved_at}")


class NoLeaderError(EscalationError):
    """Expedite was requested while no resolution has any vote."""

    user_message = "Cannot expedite: no votes have been cast yet."

    def __init__(self, escalation_id: str) -> None:
        self.escalation_id = escalation_id
        super().__init__(f"escalation {escalation_id} has no leading resolution")


class StorageError(EscalationError):
    """The escalation store failed to read or write.

    Writes that may have partially applied must not be retried blindly:
    toggling is not idempotent against retries.
    """

    user_message = "The escalation database is unavailable, please try again shortly."

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"storage failure during {operation}: {cause}")

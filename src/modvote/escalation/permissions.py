"""Moderator capability check shared by every mutating escalation operation."""

from __future__ import annotations

from typing import Iterable, Optional

from modvote.escalation.errors import NotAuthorizedError


def has_moderator_role(caller_roles: Iterable[object], moderator_roles: Iterable[object]) -> bool:
    """Return True when the caller holds at least one of the moderator roles."""
    allowed = {str(role) for role in moderator_roles}
    return any(str(role) in allowed for role in caller_roles)


def require_moderator(
    caller_roles: Iterable[object],
    moderator_roles: Iterable[object],
    operation: str,
    user_id: Optional[str] = None,
) -> None:
    """Raise :class:`NotAuthorizedError` unless the caller is a moderator."""
    if not has_moderator_role(caller_roles, moderator_roles):
        raise NotAuthorizedError(operation, user_id)

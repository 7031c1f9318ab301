"""Periodic sweep that auto-resolves escalations whose deadline has passed.

Each tick lists the due cases, recomputes every tally from the votes as they
are now, and resolves the case with the leader (or ``track`` when nobody
voted or the reported user is gone) through the store's conditional resolve.
A case a concurrent vote or expedite already resolved is skipped silently.

Cases are processed one by one. The per-case timeout bounds the preparation
(vote reads and the reported-user check); the conditional resolve itself is
awaited to completion, so a committed resolution always reaches the
listeners. A failing case never stops the rest of the batch.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple

from modvote.datatypes.escalation_datatypes import (
    NO_ACTION_RESOLUTION,
    Escalation,
    Resolution,
    ResolutionEvent,
    ResolutionSource,
    SweepSummary,
    VoteTally,
)
from modvote.escalation.escalation_store import EscalationStore, utcnow
from modvote.escalation.tally import tally_votes
from modvote.util.logger import get_logger

logger = get_logger("resolution_scheduler")

ResolutionListener = Callable[[ResolutionEvent], Awaitable[None]]

# Returns why the reported user can no longer be acted on, or None if they still can
ReportedUserCheck = Callable[[Escalation], Awaitable[Optional[str]]]

CasePlan = Tuple[VoteTally, Resolution, Optional[str]]


class ResolutionScheduler:
    """
    Background sweep for due escalations.

    Args:
        store: Escalation persistence.
        get_interval: Callable returning the sweep interval in seconds (read at start).
        case_timeout: Seconds the preparation of one case may take before it is
            abandoned for this tick.
        check_reported_user: Optional coroutine reporting that the reported user
            left the guild or deleted their account; such cases resolve as ``track``.
    """

    def __init__(
        self,
        store: EscalationStore,
        get_interval: Callable[[], float],
        case_timeout: float = 30.0,
        check_reported_user: Optional[ReportedUserCheck] = None,
    ) -> None:
        self._store = store
        self._get_interval = get_interval
        self._case_timeout = case_timeout
        self._check_reported_user = check_reported_user
        self._listeners: List[ResolutionListener] = []
        self._task: asyncio.Task | None = None

    def add_listener(self, listener: ResolutionListener) -> None:
        """Register a coroutine called after every resolution this sweep applies."""
        self._listeners.append(listener)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def sweep_once(self, now: Optional[datetime] = None) -> SweepSummary:
        """Resolve every case that is due at ``now``."""
        now = now or utcnow()
        summary = SweepSummary()

        due = await self._store.list_due(now)
        if not due:
            return summary

        logger.debug("[RESOLUTION SCHEDULER] Processing %d due escalations", len(due))
        for escalation in due:
            summary.processed += 1
            try:
                plan = await asyncio.wait_for(self._plan_case(escalation), timeout=self._case_timeout)
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                summary.failed += 1
                logger.error(
                    "[RESOLUTION SCHEDULER] Escalation %s timed out after %.1fs; retrying next sweep",
                    escalation.id, self._case_timeout,
                )
                continue
            except Exception as exc:
                summary.failed += 1
                logger.error("[RESOLUTION SCHEDULER] Failed to prepare escalation %s: %s", escalation.id, exc)
                continue

            try:
                event = await self._resolve_case(escalation, plan, now)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                summary.failed += 1
                logger.error("[RESOLUTION SCHEDULER] Failed to resolve escalation %s: %s", escalation.id, exc)
                continue

            if event is None:
                summary.skipped += 1
                continue

            summary.resolved += 1
            await self._notify(event)

        logger.info(
            "[RESOLUTION SCHEDULER] Sweep finished: processed=%d resolved=%d skipped=%d failed=%d",
            summary.processed, summary.resolved, summary.skipped, summary.failed,
        )
        return summary

    async def _plan_case(self, escalation: Escalation) -> CasePlan:
        """Read-only preparation: tally, target resolution and reported-user state."""
        tally = tally_votes(await self._store.list_votes(escalation.id))
        resolution = tally.leader if tally.leader is not None else NO_ACTION_RESOLUTION

        gone_reason = None
        if self._check_reported_user is not None:
            gone_reason = await self._check_reported_user(escalation)
            if gone_reason:
                logger.info(
                    "[RESOLUTION SCHEDULER] Reported user of %s is gone (%s); resolving as %s instead of %s",
                    escalation.id, gone_reason, NO_ACTION_RESOLUTION, resolution,
                )
                resolution = NO_ACTION_RESOLUTION
        return tally, resolution, gone_reason

    async def _resolve_case(
        self,
        escalation: Escalation,
        plan: CasePlan,
        now: datetime,
    ) -> Optional[ResolutionEvent]:
        tally, resolution, gone_reason = plan

        # Awaited without the per-case timeout: a write that commits must be announced
        applied = await self._store.resolve(escalation.id, resolution, now)
        if not applied:
            logger.debug("[RESOLUTION SCHEDULER] Escalation %s resolved elsewhere; skipping", escalation.id)
            return None

        escalation.resolved_at = now
        escalation.resolution = resolution
        logger.info(
            "[RESOLUTION SCHEDULER] Auto-resolved escalation %s as %s (%d voters)",
            escalation.id, resolution, tally.total_votes,
        )
        return ResolutionEvent(
            escalation=escalation,
            resolution=resolution,
            tally=tally,
            source=ResolutionSource.SWEEP,
            resolved_at=now,
            user_gone_reason=gone_reason,
        )

    async def _notify(self, event: ResolutionEvent) -> None:
        """Hand the event to every listener; failures are logged, never raised."""
        for listener in self._listeners:
            try:
                await listener(event)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "[RESOLUTION SCHEDULER] Listener failed for escalation %s: %s",
                    event.escalation.id, exc,
                )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _run_loop(self, interval: float) -> None:
        logger.info("[RESOLUTION SCHEDULER] Starting sweep loop (interval=%.1fs)", interval)
        try:
            while True:
                try:
                    await self.sweep_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[RESOLUTION SCHEDULER] Unexpected error during sweep: %s", exc)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[RESOLUTION SCHEDULER] Sweep loop cancelled")
            raise

    def start(self) -> None:
        """Start the background sweep task if it is not already running."""
        if self.is_running:
            logger.warning("[RESOLUTION SCHEDULER] Sweep task already running")
            return
        self._task = asyncio.create_task(self._run_loop(self._get_interval()), name="modvote-resolution-sweep")

    def stop(self) -> None:
        """Request cancellation without waiting (for synchronous callers)."""
        if self._task and not self._task.done():
            self._task.cancel()

    async def shutdown(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[RESOLUTION SCHEDULER] Scheduler shutdown complete")

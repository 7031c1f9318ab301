"""
Scheduled work for Modvote.

- **resolution_scheduler.py**: Periodic sweep that auto-resolves escalations
  whose deadline has passed. Resolution is exactly-once: the sweep and live
  voting both go through the store's conditional resolve, and whichever loses
  the race skips silently. Per-case failures and timeouts are isolated and
  retried on the next tick.
"""

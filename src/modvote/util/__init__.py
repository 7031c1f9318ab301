"""
Utility helpers for Modvote.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  verbose libraries (Discord internals, aiosqlite, networking). Uses
  prompt_toolkit so log lines never tear an active console prompt.
"""

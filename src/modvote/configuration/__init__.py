"""
Configuration management for Modvote.

- **app_configuration.py**: File-locked YAML configuration loader for global
  settings: database location, escalation defaults (quorum, voting strategy,
  vote mode, moderator roles, restrict role, timeout length) and the resolution
  sweep interval and per-case timeout. Falls back to defaults on missing or
  malformed config files.
"""

"""
Discord cogs for Modvote.

- **escalation_cog.py**: ``/escalate`` command, vote buttons, and delivery of
  resolved outcomes to the reported member.
"""

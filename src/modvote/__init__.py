"""
Modvote - Escalation voting for Discord moderation teams

Modvote lets a panel of moderators vote on what to do about a reported user,
tallies those votes and resolves the case either as soon as a quorum agrees or
automatically once a countdown (which shortens with every vote) runs out.

Core Components:

- **Escalation Store**: SQLite persistence for cases and individual votes,
  with atomic vote toggling and an exactly-once conditional resolve
- **Voting**: Pure tally, deadline planning and early-resolution rules
- **Vote Recorder**: Orchestrates a single vote cast end to end
- **Resolution Scheduler**: Background sweep that auto-resolves due cases
- **Escalation Cog**: py-cord surface that renders votes and applies the
  decided moderation action

Usage:
    from modvote.main import main
    main()  # Starts the bot
"""

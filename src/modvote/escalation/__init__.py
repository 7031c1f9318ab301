"""
Escalation voting and resolution engine.

- **tally.py**, **planner.py**, **early_resolution.py**: pure voting rules
  (ranking, deadline decay, quorum detection).
- **escalation_store.py**: persistence contract with atomic vote toggling and
  the exactly-once conditional resolve.
- **vote_recorder.py**: one vote cast end to end.
- **escalation_service.py**: case creation, expedite and majority upgrade.
- **escalation_messages.py**: text rendering for vote messages.
- **errors.py**, **permissions.py**: error taxonomy and moderator check.
"""

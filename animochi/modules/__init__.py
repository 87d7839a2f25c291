"""
Domain modules for the Animochi quest and wallet core.

- quests/: Quest catalog and daily quest lifecycle
- rewards/: Exactly-once reward claims
- wallet/: Animochi wallet ledger
- shared/: Base repository, base service and domain exceptions
- actions.py: Facade the presentation layer calls
"""

"""
Table repositories.

Each repository is a set of static coroutines taking an open aiosqlite
connection, so callers decide the transaction boundaries:

- **quarantine_repo.py**: ``user_quarantine`` rows.
- **group_repo.py**: ``managed_groups`` rows and filtered group queries.
- **trigger_repo.py**: ``trigger_configs`` rows with JSON-encoded entities.
- **user_repo.py**: ``users`` rows written by ``/start``.
"""

from nazer.repositories.group_repo import GroupRepo
from nazer.repositories.quarantine_repo import QuarantineRepo
from nazer.repositories.trigger_repo import TriggerRepo
from nazer.repositories.user_repo import UserRepo

__all__ = ["GroupRepo", "QuarantineRepo", "TriggerRepo", "UserRepo"]

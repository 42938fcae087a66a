"""
Quarantine enforcement.

- **entity_codec.py**: normalizes Telegram formatting entities into
  ``FormattingSpan`` lists for storage and turns them back for replay.
- **eviction.py**: ``GroupEvictionOrchestrator``, concurrent removal of a user
  from every managed group except their home group.
- **quarantine.py**: ``QuarantineService``, the per-user quarantine state
  machine (trigger, transfer, release, cached lookup).
"""

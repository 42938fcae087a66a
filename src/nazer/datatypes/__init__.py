"""
Typed data structures shared across Nazer.

- **telegram_datatypes.py**: ``UserID`` and ``ChatID`` wrappers.
- **message_datatypes.py**: ``FormattingSpan`` and ``EncodedMessage``.
- **quarantine_datatypes.py**: persistent records (quarantine, group,
  trigger configuration, user profile) and the ``QuarantineState`` enum.
"""

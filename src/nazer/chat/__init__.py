"""
Chat platform access.

- **base.py**: ``ChatPlatformClient`` contract, ``MembershipStatus`` and the
  ``ChatPlatformError`` / ``PermissionDenied`` errors.
- **telegram_client.py**: ``TelegramChatClient`` built on python-telegram-bot.
"""

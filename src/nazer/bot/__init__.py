"""
Telegram update handlers.

Each module exposes ``setup(application)`` which registers its handlers:

- **start_handler.py**: ``/start``.
- **quarantine_handlers.py**: ``/trigger1``, ``/trigger2`` and member joins.
- **group_handlers.py**: bot membership updates, ``/register_group`` and
  ``/settrigger``.

Handlers find the ``ServiceContext`` in ``application.bot_data["services"]``.
"""

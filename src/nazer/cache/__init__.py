"""
In-process caching.

- **ttl_cache.py**: ``TTLCache``, an expiring key/value map with lazy expiry
  on read and a background sweep. One instance is owned by the
  ``ServiceContext`` and handed to every collaborator that needs it.

Cache key helpers live here so invalidation and lookups agree on the format.
"""

from nazer.cache.ttl_cache import CacheEntry, TTLCache


def quarantine_key(user_id) -> str:
    return f"quarantine:{user_id}"


def bot_rights_key(chat_id) -> str:
    return f"bot_rights:{chat_id}"


def admin_key(chat_id, user_id) -> str:
    return f"admin:{chat_id}:{user_id}"


def trigger_key(chat_id) -> str:
    return f"trigger:{chat_id}"


__all__ = [
    "CacheEntry",
    "TTLCache",
    "quarantine_key",
    "bot_rights_key",
    "admin_key",
    "trigger_key",
]

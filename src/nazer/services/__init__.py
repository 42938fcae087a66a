"""
Service wiring.

- **context.py**: ``ServiceContext`` builds and owns the cache, store, platform
  client, restore scheduler, eviction orchestrator, follow-up dispatcher and
  quarantine service, and exposes a ``HealthReport``.
"""

"""
Nazer - Telegram Group Quarantine Bot

Nazer keeps a quarantined user confined to one group: when quarantine starts
(via ``/trigger1`` or by joining a watched group) the user is removed from
every other group the bot administers, and an optional follow-up message is
posted to the quarantine group after a configured delay.

Core Components:

- **Cache**: In-process TTL cache in front of the store, swept periodically
- **Membership Store**: SQLite persistence for users, quarantine records,
  managed groups and per-group trigger configuration
- **Quarantine Service**: The quarantine state machine (trigger, transfer,
  release) with write-then-invalidate cache discipline
- **Eviction Orchestrator**: Concurrent per-group removal with partial-failure
  tolerance and delayed restore
- **Follow-up Dispatcher**: Delayed sends with a parse-mode fallback
- **Interactive Console**: Live status, cache inspection and shutdown

Usage:
    from nazer.main import main
    main()  # Starts the bot with console interface
"""

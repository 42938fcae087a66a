"""
Time-delayed actions.

- **restore_scheduler.py**: lifts an eviction ban after a short delay so the
  user can rejoin later. Min-heap of jobs keyed per (group, user), one runner
  task, cancellation and graceful shutdown.
- **followup_dispatcher.py**: detached one-shot sends of a group's configured
  follow-up message, with a plain-markup fallback when the formatted send is
  rejected.
"""

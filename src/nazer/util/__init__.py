"""
Shared utilities for Nazer.

- **logger.py**: Session-wide logging setup. Every module asks for a named
  logger through ``get_logger``; records go to a prompt_toolkit-aware console
  handler and to one rotating log file per bot session.
"""

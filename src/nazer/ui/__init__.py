"""
Operator-facing UI.

- **console.py**: prompt_toolkit console running next to the bot (status,
  cache inspection, shutdown).
"""

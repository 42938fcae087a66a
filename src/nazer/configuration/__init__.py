"""
Configuration management for Nazer.

- **app_configuration.py**: File-locked YAML loader for global tunables
  (cache lifetime and sweep interval, restore delay after an eviction,
  follow-up fallback markup, database location). Falls back to defaults on
  missing or malformed config files.

Secrets such as ``BOT_TOKEN`` are read from the environment by ``nazer.main``.
"""

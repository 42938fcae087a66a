"""
Database package for Nazer.

- **db_connection.py**: single long-lived aiosqlite connection with
  serialised write transactions.
- **db_schema.py**: idempotent table and index creation.
- **membership_store.py**: the ``MembershipStore`` contract and its SQLite
  implementation; raises ``StoreError`` on backend failures.
"""

"""
Database schema initialization.

Creates tables, indexes and the schema version row. Every statement is
idempotent so initialization runs on every startup.
"""

import aiosqlite
from nazer.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the Nazer schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY,
                first_name TEXT NOT NULL DEFAULT '',
                username TEXT,
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_quarantine (
                user_id INTEGER PRIMARY KEY,
                current_group_id INTEGER NOT NULL,
                is_quarantined INTEGER NOT NULL DEFAULT 1,
                started_at INTEGER NOT NULL,
                ended_at INTEGER,
                first_name TEXT NOT NULL DEFAULT '',
                last_name TEXT,
                username TEXT
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS managed_groups (
                chat_id INTEGER PRIMARY KEY,
                title TEXT NOT NULL DEFAULT '',
                chat_type TEXT NOT NULL DEFAULT 'supergroup',
                is_bot_admin INTEGER NOT NULL DEFAULT 0,
                last_updated INTEGER NOT NULL
            )
        """)

        # second_message_entities holds the JSON-encoded span list
        await db.execute("""
            CREATE TABLE IF NOT EXISTS trigger_configs (
                group_id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                delay_seconds INTEGER NOT NULL CHECK (delay_seconds >= 1),
                second_message_text TEXT NOT NULL,
                second_message_entities TEXT NOT NULL DEFAULT '[]'
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_quarantine_group "
            "ON user_quarantine(current_group_id, is_quarantined)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_groups_admin ON managed_groups(is_bot_admin)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )

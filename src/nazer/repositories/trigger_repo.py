"""Persistent storage for per-group follow-up trigger configuration."""

from __future__ import annotations

from typing import Optional

import aiosqlite

from nazer.datatypes.quarantine_datatypes import TriggerConfig
from nazer.datatypes.telegram_datatypes import ChatID
from nazer.moderation.entity_codec import dumps_entities, loads_entities


class TriggerRepo:
    """Low-level CRUD for the ``trigger_configs`` table (one row per group)."""

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, config: TriggerConfig) -> None:
        await conn.execute(
            """
            INSERT INTO trigger_configs
                (group_id, name, delay_seconds, second_message_text, second_message_entities)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(group_id) DO UPDATE SET
                name                    = excluded.name,
                delay_seconds           = excluded.delay_seconds,
                second_message_text     = excluded.second_message_text,
                second_message_entities = excluded.second_message_entities
            """,
            (
                config.group_id.to_int(),
                config.name,
                config.delay_seconds,
                config.second_message_text,
                dumps_entities(config.second_message_entities),
            ),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, group_id: ChatID) -> bool:
        cursor = await conn.execute(
            "DELETE FROM trigger_configs WHERE group_id = ?", (group_id.to_int(),)
        )
        return cursor.rowcount > 0

    @staticmethod
    async def get(conn: aiosqlite.Connection, group_id: ChatID) -> Optional[TriggerConfig]:
        cursor = await conn.execute(
            "SELECT group_id, name, delay_seconds, second_message_text, second_message_entities "
            "FROM trigger_configs WHERE group_id = ?",
            (group_id.to_int(),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return TriggerConfig(
            group_id=ChatID(row[0]),
            name=row[1],
            delay_seconds=int(row[2]),
            second_message_text=row[3],
            second_message_entities=loads_entities(row[4]),
        )

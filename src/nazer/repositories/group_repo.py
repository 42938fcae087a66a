"""Persistent storage for managed groups."""

from __future__ import annotations

from typing import List, Optional

import aiosqlite

from nazer.datatypes.quarantine_datatypes import GroupRecord
from nazer.datatypes.telegram_datatypes import ChatID

_COLUMNS = "chat_id, title, chat_type, is_bot_admin, last_updated"


def _row_to_record(row) -> GroupRecord:
    return GroupRecord(
        chat_id=ChatID(row[0]),
        title=row[1] or "",
        chat_type=row[2],
        is_bot_admin=bool(row[3]),
        last_updated=int(row[4]),
    )


class GroupRepo:
    """Low-level CRUD for the ``managed_groups`` table."""

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, record: GroupRecord) -> None:
        await conn.execute(
            f"""
            INSERT INTO managed_groups ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                title        = excluded.title,
                chat_type    = excluded.chat_type,
                is_bot_admin = excluded.is_bot_admin,
                last_updated = excluded.last_updated
            """,
            (
                record.chat_id.to_int(),
                record.title,
                record.chat_type,
                int(record.is_bot_admin),
                record.last_updated,
            ),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, chat_id: ChatID) -> bool:
        cursor = await conn.execute(
            "DELETE FROM managed_groups WHERE chat_id = ?", (chat_id.to_int(),)
        )
        return cursor.rowcount > 0

    @staticmethod
    async def get(conn: aiosqlite.Connection, chat_id: ChatID) -> Optional[GroupRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM managed_groups WHERE chat_id = ?", (chat_id.to_int(),)
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    @staticmethod
    async def query(
        conn: aiosqlite.Connection, *, bot_is_admin: Optional[bool] = None
    ) -> List[GroupRecord]:
        """Return groups, optionally only those with the given admin flag, ordered by chat id."""
        if bot_is_admin is None:
            cursor = await conn.execute(f"SELECT {_COLUMNS} FROM managed_groups ORDER BY chat_id")
        else:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM managed_groups WHERE is_bot_admin = ? ORDER BY chat_id",
                (int(bot_is_admin),),
            )
        return [_row_to_record(row) for row in await cursor.fetchall()]

"""
Persistent storage for quarantine records.

One row per user; releasing a user flips ``is_quarantined`` and sets
``ended_at`` instead of deleting the row.
"""

from __future__ import annotations

from typing import List, Optional

import aiosqlite

from nazer.datatypes.quarantine_datatypes import QuarantineRecord
from nazer.datatypes.telegram_datatypes import ChatID, UserID

_COLUMNS = (
    "user_id, current_group_id, is_quarantined, started_at, ended_at, "
    "first_name, last_name, username"
)


def _row_to_record(row) -> QuarantineRecord:
    return QuarantineRecord(
        user_id=UserID(row[0]),
        current_group_id=ChatID(row[1]),
        is_quarantined=bool(row[2]),
        started_at=int(row[3]),
        ended_at=int(row[4]) if row[4] is not None else None,
        first_name=row[5] or "",
        last_name=row[6],
        username=row[7],
    )


class QuarantineRepo:
    """Low-level CRUD for the ``user_quarantine`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, record: QuarantineRecord) -> None:
        """Insert or overwrite the record of ``record.user_id``."""
        await conn.execute(
            f"""
            INSERT INTO user_quarantine ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                current_group_id = excluded.current_group_id,
                is_quarantined   = excluded.is_quarantined,
                started_at       = excluded.started_at,
                ended_at         = excluded.ended_at,
                first_name       = excluded.first_name,
                last_name        = excluded.last_name,
                username         = excluded.username
            """,
            (
                record.user_id.to_int(),
                record.current_group_id.to_int(),
                int(record.is_quarantined),
                record.started_at,
                record.ended_at,
                record.first_name,
                record.last_name,
                record.username,
            ),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, user_id: UserID) -> bool:
        cursor = await conn.execute(
            "DELETE FROM user_quarantine WHERE user_id = ?", (user_id.to_int(),)
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, user_id: UserID) -> Optional[QuarantineRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM user_quarantine WHERE user_id = ?",
            (user_id.to_int(),),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    @staticmethod
    async def list_active(conn: aiosqlite.Connection, group_id: ChatID) -> List[QuarantineRecord]:
        """Return users currently quarantined with ``group_id`` as their home."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM user_quarantine "
            "WHERE current_group_id = ? AND is_quarantined = 1 ORDER BY started_at",
            (group_id.to_int(),),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]

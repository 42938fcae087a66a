"""Persistent storage for users who started the bot."""

from __future__ import annotations

from typing import Optional

import aiosqlite

from nazer.datatypes.quarantine_datatypes import UserProfile
from nazer.datatypes.telegram_datatypes import UserID


class UserRepo:
    """Low-level CRUD for the ``users`` table."""

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, profile: UserProfile) -> None:
        """Insert the profile or refresh its name fields; ``created_at`` is kept."""
        await conn.execute(
            """
            INSERT INTO users (user_id, first_name, username, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                first_name = excluded.first_name,
                username   = excluded.username
            """,
            (profile.user_id.to_int(), profile.first_name, profile.username, profile.created_at),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, user_id: UserID) -> bool:
        cursor = await conn.execute("DELETE FROM users WHERE user_id = ?", (user_id.to_int(),))
        return cursor.rowcount > 0

    @staticmethod
    async def get(conn: aiosqlite.Connection, user_id: UserID) -> Optional[UserProfile]:
        cursor = await conn.execute(
            "SELECT user_id, first_name, username, created_at FROM users WHERE user_id = ?",
            (user_id.to_int(),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return UserProfile(
            user_id=UserID(row[0]),
            first_name=row[1] or "",
            username=row[2],
            created_at=int(row[3]),
        )

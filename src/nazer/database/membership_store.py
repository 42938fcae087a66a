"""
Membership store: the persistence contract used by the moderation layer.

``MembershipStore`` is the abstract contract (get / upsert / delete by record
kind, plus group queries). "Not found" is reported as ``None``; every backend
failure is raised as :class:`StoreError` so callers can degrade gracefully.

``SQLiteMembershipStore`` implements the contract on top of one long-lived
aiosqlite connection and the table repositories.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import aiosqlite

from nazer.database.db_connection import ConnectionManager
from nazer.database.db_schema import SchemaManager
from nazer.datatypes.quarantine_datatypes import (
    GroupRecord,
    QuarantineRecord,
    TriggerConfig,
    UserProfile,
)
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.repositories import GroupRepo, QuarantineRepo, TriggerRepo, UserRepo
from nazer.util.logger import get_logger

logger = get_logger("membership_store")

Record = Union[QuarantineRecord, GroupRecord, TriggerConfig, UserProfile]


class StoreError(Exception):
    """A store operation failed (connection, SQL or data error)."""


class RecordKind(Enum):
    USER = "users"
    QUARANTINE = "user_quarantine"
    GROUP = "managed_groups"
    TRIGGER = "trigger_configs"


_RECORD_TYPES = {
    RecordKind.USER: UserProfile,
    RecordKind.QUARANTINE: QuarantineRecord,
    RecordKind.GROUP: GroupRecord,
    RecordKind.TRIGGER: TriggerConfig,
}


@dataclass(frozen=True, slots=True)
class GroupFilter:
    """Conditions for :meth:`MembershipStore.query_groups`; ``None`` means any."""

    bot_is_admin: Optional[bool] = None


class MembershipStore(ABC):
    """Abstract persisted group / user / quarantine records."""

    @abstractmethod
    async def get_record(self, kind: RecordKind, key: Any) -> Optional[Record]:
        """Return the record of ``kind`` stored under ``key``, or ``None``."""

    @abstractmethod
    async def upsert(self, kind: RecordKind, record: Record) -> None:
        """Insert or overwrite ``record``."""

    @abstractmethod
    async def delete(self, kind: RecordKind, key: Any) -> bool:
        """Delete the record under ``key``; True if something was removed."""

    @abstractmethod
    async def query_groups(self, group_filter: GroupFilter = GroupFilter()) -> Sequence[GroupRecord]:
        """Return managed groups matching ``group_filter``."""

    @abstractmethod
    async def list_active_quarantines(self, group_id: Any) -> Sequence[QuarantineRecord]:
        """Return users currently quarantined with ``group_id`` as their home group."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the backend answers a trivial query."""


def _normalize_key(kind: RecordKind, key: Any) -> Union[UserID, ChatID]:
    if kind in (RecordKind.USER, RecordKind.QUARANTINE):
        return UserID(key)
    return ChatID(key)


class SQLiteMembershipStore(MembershipStore):
    """
    aiosqlite implementation of :class:`MembershipStore`.

    Lifecycle:
        1. ``await store.initialize()`` at startup (opens the file, creates schema)
        2. use the contract methods
        3. ``await store.close()`` at shutdown
    """

    def __init__(self, db_path: Path, connection: Optional[ConnectionManager] = None) -> None:
        self.db_path = db_path
        self._db = connection or ConnectionManager()

    async def initialize(self) -> None:
        """
        Open the database and create the schema.

        Raises:
            StoreError: If the database cannot be opened or initialized.
        """
        try:
            await self._db.open(self.db_path)
            await SchemaManager.initialize_schema(self._db.connection)
        except (aiosqlite.Error, OSError) as exc:
            raise StoreError(f"could not initialize database at {self.db_path}: {exc}") from exc
        logger.info("[STORE] Membership store ready at %s", self.db_path)

    async def close(self) -> None:
        await self._db.close()

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get_record(self, kind: RecordKind, key: Any) -> Optional[Record]:
        key = _normalize_key(kind, key)
        try:
            async with self._db.read() as conn:
                if kind is RecordKind.QUARANTINE:
                    return await QuarantineRepo.get(conn, key)
                if kind is RecordKind.GROUP:
                    return await GroupRepo.get(conn, key)
                if kind is RecordKind.TRIGGER:
                    return await TriggerRepo.get(conn, key)
                return await UserRepo.get(conn, key)
        except (aiosqlite.Error, RuntimeError, ValueError, KeyError, TypeError) as exc:
            logger.error("[STORE] Failed to read %s %s: %s", kind.value, key, exc)
            raise StoreError(f"read of {kind.value} {key} failed: {exc}") from exc

    async def upsert(self, kind: RecordKind, record: Record) -> None:
        expected = _RECORD_TYPES[kind]
        if not isinstance(record, expected):
            raise TypeError(f"{kind.name} expects {expected.__name__}, got {type(record).__name__}")
        try:
            async with self._db.transaction() as conn:
                if kind is RecordKind.QUARANTINE:
                    await QuarantineRepo.upsert(conn, record)
                elif kind is RecordKind.GROUP:
                    await GroupRepo.upsert(conn, record)
                elif kind is RecordKind.TRIGGER:
                    await TriggerRepo.upsert(conn, record)
                else:
                    await UserRepo.upsert(conn, record)
        except (aiosqlite.Error, RuntimeError) as exc:
            logger.error("[STORE] Failed to upsert %s: %s", kind.value, exc)
            raise StoreError(f"upsert into {kind.value} failed: {exc}") from exc

    async def delete(self, kind: RecordKind, key: Any) -> bool:
        key = _normalize_key(kind, key)
        try:
            async with self._db.transaction() as conn:
                if kind is RecordKind.QUARANTINE:
                    return await QuarantineRepo.delete(conn, key)
                if kind is RecordKind.GROUP:
                    return await GroupRepo.delete(conn, key)
                if kind is RecordKind.TRIGGER:
                    return await TriggerRepo.delete(conn, key)
                return await UserRepo.delete(conn, key)
        except (aiosqlite.Error, RuntimeError) as exc:
            logger.error("[STORE] Failed to delete %s %s: %s", kind.value, key, exc)
            raise StoreError(f"delete from {kind.value} failed: {exc}") from exc

    async def query_groups(self, group_filter: GroupFilter = GroupFilter()) -> List[GroupRecord]:
        try:
            async with self._db.read() as conn:
                return await GroupRepo.query(conn, bot_is_admin=group_filter.bot_is_admin)
        except (aiosqlite.Error, RuntimeError) as exc:
            logger.error("[STORE] Group query failed: %s", exc)
            raise StoreError(f"group query failed: {exc}") from exc

    async def list_active_quarantines(self, group_id: Any) -> List[QuarantineRecord]:
        try:
            async with self._db.read() as conn:
                return await QuarantineRepo.list_active(conn, ChatID(group_id))
        except (aiosqlite.Error, RuntimeError) as exc:
            logger.error("[STORE] Quarantine listing for %s failed: %s", group_id, exc)
            raise StoreError(f"quarantine listing failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            async with self._db.read() as conn:
                cursor = await conn.execute("SELECT 1")
                return await cursor.fetchone() is not None
        except (aiosqlite.Error, RuntimeError) as exc:
            logger.warning("[STORE] Ping failed: %s", exc)
            return False

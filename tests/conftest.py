"""
Pytest configuration and fixtures for Nazer tests.
"""

import sys
from pathlib import Path

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from typing import Any, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio

from nazer.cache import TTLCache
from nazer.chat.base import ChatPlatformClient, MembershipStatus
from nazer.database.membership_store import (
    GroupFilter,
    MembershipStore,
    RecordKind,
    SQLiteMembershipStore,
    StoreError,
)
from nazer.datatypes.quarantine_datatypes import GroupRecord
from nazer.datatypes.telegram_datatypes import ChatID, UserID

BOT_ID = 999


class FakeChatClient(ChatPlatformClient):
    """Records every platform call; errors can be queued per group or per send."""

    def __init__(self) -> None:
        self.statuses: Dict[ChatID, MembershipStatus] = {}
        self.remove_errors: Dict[ChatID, BaseException] = {}
        self.send_errors: List[BaseException] = []
        self.removed: List[tuple[ChatID, UserID]] = []
        self.restored: List[tuple[ChatID, UserID]] = []
        self.sent: List[Dict[str, Any]] = []
        self.status_calls = 0

    @property
    def self_id(self) -> UserID:
        return UserID(BOT_ID)

    async def get_membership_status(self, group_id: ChatID, user_id: UserID) -> MembershipStatus:
        self.status_calls += 1
        return self.statuses.get(
            ChatID(group_id), MembershipStatus("administrator", can_restrict_members=True)
        )

    async def remove_member(self, group_id: ChatID, user_id: UserID) -> None:
        error = self.remove_errors.get(ChatID(group_id))
        if error is not None:
            raise error
        self.removed.append((ChatID(group_id), UserID(user_id)))

    async def restore_member(self, group_id: ChatID, user_id: UserID) -> None:
        self.restored.append((ChatID(group_id), UserID(user_id)))

    async def send_message(self, group_id, text, *, entities=None, reply_to=None, parse_mode=None) -> int:
        if self.send_errors:
            raise self.send_errors.pop(0)
        self.sent.append(
            {
                "group_id": group_id,
                "text": text,
                "entities": entities,
                "reply_to": reply_to,
                "parse_mode": parse_mode,
            }
        )
        return len(self.sent)


class InMemoryStore(MembershipStore):
    """Dict-backed store; ``fail_reads`` / ``fail_writes`` raise StoreError."""

    def __init__(self) -> None:
        self.records: Dict[RecordKind, Dict[str, Any]] = {kind: {} for kind in RecordKind}
        self.fail_reads = False
        self.fail_writes = False
        self.get_calls = 0
        self.upsert_calls = 0

    @staticmethod
    def _key(kind: RecordKind, record: Any) -> str:
        if kind is RecordKind.GROUP:
            return str(record.chat_id)
        if kind is RecordKind.TRIGGER:
            return str(record.group_id)
        return str(record.user_id)

    async def get_record(self, kind: RecordKind, key: Any) -> Optional[Any]:
        self.get_calls += 1
        if self.fail_reads:
            raise StoreError("read failed")
        return self.records[kind].get(str(key))

    async def upsert(self, kind: RecordKind, record: Any) -> None:
        self.upsert_calls += 1
        if self.fail_writes:
            raise StoreError("write failed")
        self.records[kind][self._key(kind, record)] = record

    async def delete(self, kind: RecordKind, key: Any) -> bool:
        return self.records[kind].pop(str(key), None) is not None

    async def query_groups(self, group_filter: GroupFilter = GroupFilter()) -> Sequence[GroupRecord]:
        if self.fail_reads:
            raise StoreError("query failed")
        groups = list(self.records[RecordKind.GROUP].values())
        if group_filter.bot_is_admin is not None:
            groups = [g for g in groups if g.is_bot_admin == group_filter.bot_is_admin]
        return sorted(groups, key=lambda g: g.chat_id.to_int())

    async def list_active_quarantines(self, group_id: Any) -> Sequence[Any]:
        if self.fail_reads:
            raise StoreError("query failed")
        records = [
            r for r in self.records[RecordKind.QUARANTINE].values()
            if r.is_quarantined and r.current_group_id == ChatID(group_id)
        ]
        return sorted(records, key=lambda r: r.started_at)

    async def ping(self) -> bool:
        return not self.fail_reads

    def add_group(self, chat_id: int, *, is_bot_admin: bool = True, title: str = "") -> GroupRecord:
        group = GroupRecord(chat_id=ChatID(chat_id), title=title or f"group {chat_id}", is_bot_admin=is_bot_admin)
        self.records[RecordKind.GROUP][str(group.chat_id)] = group
        return group


class FakeClock:
    """Manually advanced monotonic clock for cache tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture()
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(default_ttl=300, sweep_interval=60, clock=clock)


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path):
    store = SQLiteMembershipStore(tmp_path / "nazer_test.db")
    await store.initialize()
    yield store
    await store.close()

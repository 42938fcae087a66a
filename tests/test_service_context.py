from pathlib import Path

import pytest

from nazer.cache import admin_key, bot_rights_key, trigger_key
from nazer.chat.base import MembershipStatus
from nazer.configuration.app_configuration import AppConfig
from nazer.database.membership_store import RecordKind
from nazer.datatypes.quarantine_datatypes import GroupRecord, QuarantineRecord, TriggerConfig, UserProfile
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.services.context import ServiceContext


@pytest.fixture()
def config(tmp_path: Path) -> AppConfig:
    path = tmp_path / "app_config.yml"
    path.write_text(
        "cache:\n  ttl_seconds: 120\n  sweep_interval_seconds: 30\n"
        "eviction:\n  restore_delay_seconds: 2\n"
        f"database:\n  path: {tmp_path / 'app.db'}\n",
        encoding="utf-8",
    )
    return AppConfig(path)


@pytest.fixture()
def context(config, client, memory_store):
    return ServiceContext(config, client, store=memory_store)


def test_components_follow_configuration(context):
    assert context.cache.default_ttl == 120
    assert context.orchestrator.restore_delay_seconds == 2
    assert context.dispatcher.fallback_parse_mode == "HTML"
    assert context.quarantine.cache is context.cache


@pytest.mark.asyncio
async def test_start_and_shutdown_manage_the_sweeper(context):
    await context.start()
    assert context.cache.sweeper_running is True

    await context.shutdown()
    assert context.cache.sweeper_running is False


@pytest.mark.asyncio
async def test_health_reports_store_and_cache(context, memory_store):
    context.cache.set("k", 1)

    report = await context.health()

    assert report.cache_entries == 1
    assert report.store_reachable is True
    assert report.pending_follow_ups == 0
    assert report.pending_restores == 0

    memory_store.fail_reads = True
    assert (await context.health()).store_reachable is False


@pytest.mark.asyncio
async def test_register_group_invalidates_cached_rights(context, memory_store):
    context.cache.set(bot_rights_key(ChatID(-5)), MembershipStatus("member"))

    assert await context.register_group(GroupRecord(ChatID(-5), "five", is_bot_admin=True)) is True

    assert context.cache.get(bot_rights_key(ChatID(-5))) is None
    assert len(await memory_store.query_groups()) == 1


@pytest.mark.asyncio
async def test_save_trigger_config_invalidates_cache_even_on_failure(context, memory_store):
    context.cache.set(trigger_key(ChatID(-5)), "stale")
    memory_store.fail_writes = True

    saved = await context.save_trigger_config(TriggerConfig(ChatID(-5), "x", 3, "text"))

    assert saved is False
    assert context.cache.get(trigger_key(ChatID(-5))) is None


@pytest.mark.asyncio
async def test_register_user_reports_store_failure(context, memory_store):
    assert await context.register_user(UserProfile(UserID(1))) is True
    memory_store.fail_writes = True
    assert await context.register_user(UserProfile(UserID(1))) is False


@pytest.mark.asyncio
async def test_is_chat_admin_is_cached(context, client):
    client.statuses[ChatID(-5)] = MembershipStatus("creator")

    assert await context.is_chat_admin(ChatID(-5), UserID(1)) is True
    assert await context.is_chat_admin(ChatID(-5), UserID(1)) is True

    assert client.status_calls == 1
    assert context.cache.get(admin_key(ChatID(-5), UserID(1))) is not None


@pytest.mark.asyncio
async def test_sqlite_store_is_created_from_config(config, client, tmp_path):
    context = ServiceContext(config, client)

    await context.start()
    try:
        assert await context.store.ping() is True
        assert (tmp_path / "app.db").exists()
    finally:
        await context.shutdown()


@pytest.mark.asyncio
async def test_list_quarantined_returns_active_records_for_group(context, memory_store):
    await memory_store.upsert(RecordKind.QUARANTINE, QuarantineRecord(UserID(2), ChatID(-10), started_at=20))
    await memory_store.upsert(RecordKind.QUARANTINE, QuarantineRecord(UserID(1), ChatID(-10), started_at=10))
    await memory_store.upsert(
        RecordKind.QUARANTINE, QuarantineRecord(UserID(3), ChatID(-10), is_quarantined=False, started_at=5)
    )
    await memory_store.upsert(RecordKind.QUARANTINE, QuarantineRecord(UserID(4), ChatID(-20), started_at=1))

    records = await context.list_quarantined(ChatID(-10))

    assert [record.user_id for record in records] == [1, 2]

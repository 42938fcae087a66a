from unittest.mock import AsyncMock, MagicMock

import pytest

from nazer.cache import quarantine_key
from nazer.database.membership_store import RecordKind
from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.datatypes.quarantine_datatypes import QuarantineRecord, TriggerConfig
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.moderation.eviction import GroupEvictionOrchestrator
from nazer.moderation.quarantine import (
    QuarantineResult,
    QuarantineService,
    ReleaseResult,
    TriggerSource,
)

USER = UserID(42)
G1 = ChatID(-1001)
G2 = ChatID(-1002)
G3 = ChatID(-1003)


@pytest.fixture()
def dispatcher():
    return MagicMock()


@pytest.fixture()
def service(memory_store, client, cache, dispatcher):
    for group in (G1, G2, G3):
        memory_store.add_group(group.to_int())
    restore_scheduler = MagicMock()
    restore_scheduler.schedule = AsyncMock()
    orchestrator = GroupEvictionOrchestrator(memory_store, client, cache, restore_scheduler)
    return QuarantineService(cache, memory_store, orchestrator, dispatcher)


def removed_groups(client):
    return sorted(group.to_int() for group, _ in client.removed)


@pytest.mark.asyncio
async def test_first_trigger_quarantines_and_evicts_elsewhere(service, memory_store, client):
    outcome = await service.trigger(USER, G1, first_name="Ann")

    assert outcome.result is QuarantineResult.QUARANTINED
    assert outcome.evicted_count == 2
    assert removed_groups(client) == [-1003, -1002]
    stored = memory_store.records[RecordKind.QUARANTINE][str(USER)]
    assert stored.current_group_id == G1
    assert stored.is_quarantined is True


@pytest.mark.asyncio
async def test_check_quarantine_is_served_from_cache(service, memory_store, cache):
    await memory_store.upsert(RecordKind.QUARANTINE, QuarantineRecord(USER, G1))

    first = await service.check_quarantine(USER)
    second = await service.check_quarantine(USER)

    assert first is second
    assert memory_store.get_calls == 1
    assert cache.get(quarantine_key(USER)) is first


@pytest.mark.asyncio
async def test_check_quarantine_ignores_released_records(service, memory_store, cache):
    await memory_store.upsert(
        RecordKind.QUARANTINE, QuarantineRecord(USER, G1, is_quarantined=False, ended_at=10)
    )

    assert await service.check_quarantine(USER) is None
    assert cache.get(quarantine_key(USER)) is None


@pytest.mark.asyncio
async def test_store_read_failure_reads_as_not_quarantined(service, memory_store):
    memory_store.fail_reads = True

    assert await service.check_quarantine(USER) is None


@pytest.mark.asyncio
async def test_repeat_trigger_in_same_group_changes_nothing(service, memory_store, client):
    await service.trigger(USER, G1)
    writes = memory_store.upsert_calls
    removed = list(client.removed)

    outcome = await service.trigger(USER, G1)

    assert outcome.result is QuarantineResult.ALREADY_QUARANTINED
    assert memory_store.upsert_calls == writes
    assert client.removed == removed


@pytest.mark.asyncio
async def test_explicit_trigger_elsewhere_moves_the_quarantine(service, memory_store, client):
    first = await service.trigger(USER, G1)
    client.removed.clear()

    outcome = await service.trigger(USER, G2)

    assert outcome.result is QuarantineResult.TRANSFERRED
    assert outcome.record.current_group_id == G2
    assert outcome.record.started_at == first.record.started_at
    assert removed_groups(client) == [-1003, -1001]
    assert memory_store.records[RecordKind.QUARANTINE][str(USER)].current_group_id == G2


@pytest.mark.asyncio
async def test_join_elsewhere_evicts_only_from_joined_group(service, memory_store, client):
    await service.trigger(USER, G1)
    client.removed.clear()
    writes = memory_store.upsert_calls

    outcome = await service.trigger(USER, G2, source=TriggerSource.JOIN)

    assert outcome.result is QuarantineResult.EVICTED_FROM_JOINED_GROUP
    assert outcome.evicted_count == 1
    assert client.removed == [(G2, USER)]
    assert memory_store.upsert_calls == writes
    assert (await service.check_quarantine(USER)).current_group_id == G1


@pytest.mark.asyncio
async def test_join_while_free_starts_a_quarantine(service):
    outcome = await service.trigger(USER, G3, source=TriggerSource.JOIN)

    assert outcome.result is QuarantineResult.QUARANTINED
    assert outcome.record.current_group_id == G3


@pytest.mark.asyncio
async def test_release_ends_quarantine_and_invalidates_cache(service, memory_store, cache):
    await service.trigger(USER, G1)
    await service.check_quarantine(USER)

    outcome = await service.release(USER)

    assert outcome.result is ReleaseResult.RELEASED
    assert outcome.record.ended_at is not None
    assert cache.get(quarantine_key(USER)) is None
    assert await service.check_quarantine(USER) is None
    assert memory_store.records[RecordKind.QUARANTINE][str(USER)].is_quarantined is False


@pytest.mark.asyncio
async def test_release_without_quarantine_writes_nothing(service, memory_store):
    outcome = await service.release(USER)

    assert outcome.result is ReleaseResult.NOT_QUARANTINED
    assert memory_store.upsert_calls == 0


@pytest.mark.asyncio
async def test_released_user_can_be_quarantined_again(service):
    await service.trigger(USER, G1)
    await service.release(USER)

    outcome = await service.trigger(USER, G2)

    assert outcome.result is QuarantineResult.QUARANTINED
    assert outcome.record.ended_at is None


@pytest.mark.asyncio
async def test_persist_failure_skips_eviction_and_clears_cache(service, memory_store, client, cache):
    memory_store.fail_writes = True

    outcome = await service.trigger(USER, G1)

    assert outcome.result is QuarantineResult.FAILED
    assert client.removed == []
    assert cache.get(quarantine_key(USER)) is None


@pytest.mark.asyncio
async def test_follow_up_is_scheduled_from_group_config(service, memory_store, dispatcher):
    spans = [FormattingSpan(kind="bold", offset=0, length=7)]
    await memory_store.upsert(
        RecordKind.TRIGGER,
        TriggerConfig(G1, "welcome", 15, "Welcome to quarantine", spans),
    )

    outcome = await service.trigger(USER, G1, reply_to_message_id=555)

    assert outcome.follow_up_scheduled is True
    dispatcher.schedule_follow_up.assert_called_once_with(
        G1, "Welcome to quarantine", spans, 555, 15, key=(str(USER), str(G1), "welcome")
    )


@pytest.mark.asyncio
async def test_no_follow_up_without_group_config(service, dispatcher):
    outcome = await service.trigger(USER, G1)

    assert outcome.follow_up_scheduled is False
    dispatcher.schedule_follow_up.assert_not_called()

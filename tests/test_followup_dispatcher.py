import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from nazer.chat.base import ChatPlatformError
from nazer.database.membership_store import RecordKind
from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.datatypes.quarantine_datatypes import TriggerConfig
from nazer.datatypes.telegram_datatypes import ChatID
from nazer.scheduler.followup_dispatcher import MIN_DELAY_SECONDS, FollowUpDispatcher, escape_for_parse_mode

GROUP = ChatID(-1001)
BOLD = [FormattingSpan(kind="bold", offset=0, length=4)]


@pytest.fixture()
def dispatcher(client):
    return FollowUpDispatcher(client, fallback_parse_mode="HTML")


@pytest.mark.asyncio
async def test_send_uses_stored_entities_and_reply(dispatcher, client):
    delivered = await dispatcher.send_with_fallback(GROUP, "Rule one", BOLD, 77)

    assert delivered is True
    assert client.sent == [
        {"group_id": GROUP, "text": "Rule one", "entities": BOLD, "reply_to": 77, "parse_mode": None}
    ]


@pytest.mark.asyncio
async def test_send_without_entities_passes_none(dispatcher, client):
    await dispatcher.send_with_fallback(GROUP, "plain", [])

    assert client.sent[0]["entities"] is None


@pytest.mark.asyncio
async def test_failed_formatted_send_falls_back_to_parse_mode(dispatcher, client):
    client.send_errors.append(ChatPlatformError("can't parse entities"))

    delivered = await dispatcher.send_with_fallback(GROUP, "Rule one", BOLD, 77)

    assert delivered is True
    assert client.sent == [
        {"group_id": GROUP, "text": "Rule one", "entities": None, "reply_to": 77, "parse_mode": "HTML"}
    ]


@pytest.mark.asyncio
async def test_fallback_escapes_markup_characters(dispatcher, client):
    client.send_errors.append(ChatPlatformError("can't parse entities"))

    delivered = await dispatcher.send_with_fallback(GROUP, "score < 5 & <b>rules</b>", BOLD)

    assert delivered is True
    assert client.sent[0]["text"] == "score &lt; 5 &amp; &lt;b&gt;rules&lt;/b&gt;"
    assert client.sent[0]["parse_mode"] == "HTML"


@pytest.mark.parametrize(
    "parse_mode, expected",
    [
        ("HTML", "a &lt; b &amp; c"),
        ("MarkdownV2", r"a < b & c\."),
        ("Markdown", "a < b & c."),
    ],
)
def test_escape_for_parse_mode(parse_mode, expected):
    text = "a < b & c" if parse_mode == "HTML" else "a < b & c."
    assert escape_for_parse_mode(text, parse_mode) == expected


@pytest.mark.asyncio
async def test_unexpected_send_error_is_logged_not_raised(dispatcher, client):
    client.send_errors.append(RuntimeError("socket closed"))
    sleep = AsyncMock()
    with patch("nazer.scheduler.followup_dispatcher.asyncio.sleep", sleep):
        task = dispatcher.schedule_follow_up(GROUP, "later", [], None, 5)
        assert await task is False

    assert client.sent == []
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_second_failure_is_swallowed(dispatcher, client):
    client.send_errors.extend([ChatPlatformError("first"), ChatPlatformError("second")])

    assert await dispatcher.send_with_fallback(GROUP, "text", BOLD) is False
    assert client.sent == []


@pytest.mark.asyncio
async def test_delay_below_minimum_is_raised_to_one_second(dispatcher):
    sleep = AsyncMock()
    with patch("nazer.scheduler.followup_dispatcher.asyncio.sleep", sleep):
        task = dispatcher.schedule_follow_up(GROUP, "hi", [], None, 0.2)
        await task

    sleep.assert_awaited_once_with(MIN_DELAY_SECONDS)


@pytest.mark.asyncio
async def test_scheduled_follow_up_is_sent_after_delay(dispatcher, client):
    sleep = AsyncMock()
    with patch("nazer.scheduler.followup_dispatcher.asyncio.sleep", sleep):
        task = dispatcher.schedule_follow_up(GROUP, "later", BOLD, 5, 30, key=("42", str(GROUP), "welcome"))
        assert await task is True

    sleep.assert_awaited_once_with(30)
    assert client.sent[0]["text"] == "later"
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_same_key_replaces_pending_follow_up(dispatcher):
    key = ("42", str(GROUP), "welcome")
    first = dispatcher.schedule_follow_up(GROUP, "one", [], None, 60, key=key)
    second = dispatcher.schedule_follow_up(GROUP, "two", [], None, 60, key=key)
    await asyncio.sleep(0)

    assert first.cancelled() or first.cancelling()
    assert dispatcher.pending_count == 1

    assert dispatcher.cancel(key) is True
    assert dispatcher.cancel(key) is False
    await asyncio.gather(second, return_exceptions=True)


@pytest.mark.asyncio
async def test_shutdown_cancels_everything(dispatcher, client):
    dispatcher.schedule_follow_up(GROUP, "one", [], None, 60)
    dispatcher.schedule_follow_up(GROUP, "two", [], None, 60)

    await dispatcher.shutdown()

    assert dispatcher.pending_count == 0
    assert client.sent == []


@pytest.mark.asyncio
async def test_persisted_formatting_is_replayed_verbatim(sqlite_store, dispatcher, client):
    spans = [
        FormattingSpan(kind="bold", offset=3, length=5),
        FormattingSpan(kind="text_link", offset=9, length=5, url="https://example.org/rules"),
    ]
    await sqlite_store.upsert(
        RecordKind.TRIGGER,
        TriggerConfig(GROUP, "welcome", 5, "👋 Hello rules", spans),
    )
    config = await sqlite_store.get_record(RecordKind.TRIGGER, GROUP)

    await dispatcher.send_with_fallback(GROUP, config.second_message_text, config.second_message_entities)

    assert client.sent[0]["text"] == "👋 Hello rules"
    assert client.sent[0]["entities"] == spans

import pytest
from telegram import MessageEntity, User
from telegram.constants import MessageEntityType

from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.moderation.entity_codec import (
    dumps_entities,
    encode,
    loads_entities,
    span_from_entity,
    to_telegram_entities,
    to_telegram_entity,
)


def test_encode_preserves_text_order_and_offsets():
    # "👋" is two UTF-16 code units, so "Hello" starts at 3
    text = "👋 Hello, read the rules"
    entities = [
        MessageEntity(type=MessageEntityType.BOLD, offset=3, length=5),
        MessageEntity(type=MessageEntityType.TEXT_LINK, offset=15, length=9, url="https://example.org/rules"),
    ]

    encoded = encode(text, entities)

    assert encoded.text == text
    assert encoded.entities == [
        FormattingSpan(kind="bold", offset=3, length=5),
        FormattingSpan(kind="text_link", offset=15, length=9, url="https://example.org/rules"),
    ]


def test_encode_keeps_mention_language_and_custom_emoji_fields():
    entities = [
        MessageEntity(type=MessageEntityType.TEXT_MENTION, offset=0, length=3,
                      user=User(id=42, first_name="Ann", is_bot=False)),
        MessageEntity(type=MessageEntityType.PRE, offset=4, length=7, language="python"),
        MessageEntity(type=MessageEntityType.CUSTOM_EMOJI, offset=12, length=2, custom_emoji_id="5368324170671202286"),
    ]

    spans = encode("Ann print() 🙂", entities).entities

    assert spans[0].user_ref == 42
    assert spans[1].language == "python"
    assert spans[2].custom_emoji_id == "5368324170671202286"


def test_encode_without_entities_gives_empty_list():
    assert encode("plain", None).entities == []
    assert encode("plain", []).entities == []
    assert encode(None, None).text == ""


def test_span_from_mapping_accepts_type_key_and_user_dict():
    span = span_from_entity({"type": "text_mention", "offset": 1, "length": 2, "user": {"id": 7}})

    assert span == FormattingSpan(kind="text_mention", offset=1, length=2, user_ref=7)


def test_dumps_omits_unset_fields_and_loads_restores_spans():
    spans = [
        FormattingSpan(kind="bold", offset=0, length=4),
        FormattingSpan(kind="text_link", offset=5, length=3, url="https://t.me"),
    ]

    payload = dumps_entities(spans)

    assert '"url"' in payload
    assert payload.count('"language"') == 0
    assert loads_entities(payload) == spans


@pytest.mark.parametrize("payload", [None, ""])
def test_loads_empty_payload(payload):
    assert loads_entities(payload) == []


def test_loads_rejects_non_list_payload():
    with pytest.raises(ValueError):
        loads_entities('{"kind": "bold"}')


def test_to_telegram_entity_builds_mention_user():
    entity = to_telegram_entity(FormattingSpan(kind="text_mention", offset=0, length=3, user_ref=42))

    assert entity.type == MessageEntityType.TEXT_MENTION
    assert entity.user.id == 42
    assert (entity.offset, entity.length) == (0, 3)


def test_to_telegram_entities_round_trips_through_encode():
    original = [
        MessageEntity(type=MessageEntityType.ITALIC, offset=0, length=2),
        MessageEntity(type=MessageEntityType.UNDERLINE, offset=3, length=4),
    ]

    replayed = to_telegram_entities(encode("hi there", original).entities)

    assert replayed == original

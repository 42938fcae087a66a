"""
Rich-text entity codec.

Turns the formatting entities Telegram attaches to a message into normalized
``FormattingSpan`` objects, serializes them for storage, and turns them back
into ``telegram.MessageEntity`` objects when the message is replayed.

Offsets and lengths are copied verbatim (Telegram's UTF-16 units) and never
recomputed, so the text stored next to the spans must not be modified after
encoding.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from telegram import MessageEntity, User

from nazer.datatypes.message_datatypes import EncodedMessage, FormattingSpan


def _kind_of(raw_type: Any) -> str:
    # MessageEntityType is a str enum; plain strings come from stored JSON
    return str(getattr(raw_type, "value", raw_type))


def span_from_entity(entity: Any) -> FormattingSpan:
    """Normalize one Telegram entity, given as a ``MessageEntity`` or a mapping."""
    if isinstance(entity, Mapping):
        user = entity.get("user")
        user_ref = entity.get("user_ref")
        if user_ref is None and user is not None:
            user_ref = user.get("id") if isinstance(user, Mapping) else getattr(user, "id", None)
        return FormattingSpan(
            kind=_kind_of(entity.get("kind", entity.get("type"))),
            offset=int(entity["offset"]),
            length=int(entity["length"]),
            url=entity.get("url") or None,
            user_ref=int(user_ref) if user_ref is not None else None,
            language=entity.get("language") or None,
            custom_emoji_id=entity.get("custom_emoji_id") or None,
        )

    user = getattr(entity, "user", None)
    return FormattingSpan(
        kind=_kind_of(entity.type),
        offset=int(entity.offset),
        length=int(entity.length),
        url=getattr(entity, "url", None) or None,
        user_ref=user.id if user is not None else None,
        language=getattr(entity, "language", None) or None,
        custom_emoji_id=getattr(entity, "custom_emoji_id", None) or None,
    )


def encode(text: Optional[str], raw_entities: Optional[Iterable[Any]]) -> EncodedMessage:
    """
    Normalize a message and its entities, preserving entity order.

    Args:
        text: Message text (``None`` is treated as empty).
        raw_entities: ``MessageEntity`` objects or mappings; ``None`` or empty
            yields an empty span list.

    Returns:
        EncodedMessage: The untouched text with its normalized spans.
    """
    spans = [span_from_entity(entity) for entity in (raw_entities or ())]
    return EncodedMessage(text=text or "", entities=spans)


def dumps_entities(spans: Sequence[FormattingSpan]) -> str:
    """Serialize spans to the JSON text stored alongside the message."""
    return json.dumps([span.to_dict() for span in spans], ensure_ascii=False)


def loads_entities(payload: Optional[str]) -> List[FormattingSpan]:
    """Inverse of :func:`dumps_entities`; empty or missing payloads give ``[]``."""
    if not payload:
        return []
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("stored entities must be a JSON list")
    return [FormattingSpan.from_dict(item) for item in data]


def to_telegram_entity(span: FormattingSpan) -> MessageEntity:
    user = None
    if span.user_ref is not None:
        # Bot API only needs the id of a mentioned user
        user = User(id=span.user_ref, first_name="", is_bot=False)
    return MessageEntity(
        type=span.kind,
        offset=span.offset,
        length=span.length,
        url=span.url,
        user=user,
        language=span.language,
        custom_emoji_id=span.custom_emoji_id,
    )


def to_telegram_entities(spans: Sequence[FormattingSpan]) -> List[MessageEntity]:
    """Build ``MessageEntity`` objects for replay, in the stored order."""
    return [to_telegram_entity(span) for span in spans]

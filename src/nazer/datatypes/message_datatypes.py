"""
Normalized rich-text formatting spans.

A span describes one formatting range over a message text. Only the fields a
span kind actually uses are set; the rest stay ``None`` and are left out of the
serialized form.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True, slots=True)
class FormattingSpan:
    """One formatting range, in Telegram's UTF-16 offset/length units.

    Attributes:
        kind: Telegram entity type (``bold``, ``text_link``, ``pre``, ...).
        offset: Start of the range in UTF-16 code units.
        length: Length of the range in UTF-16 code units.
        url: Target of a ``text_link``.
        user_ref: User id of a ``text_mention``.
        language: Language tag of a ``pre`` block.
        custom_emoji_id: Sticker id of a ``custom_emoji``.
    """

    kind: str
    offset: int
    length: int
    url: Optional[str] = None
    user_ref: Optional[int] = None
    language: Optional[str] = None
    custom_emoji_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind, "offset": self.offset, "length": self.length}
        for name in ("url", "user_ref", "language", "custom_emoji_id"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormattingSpan":
        user_ref = data.get("user_ref")
        return cls(
            kind=str(data["kind"]),
            offset=int(data["offset"]),
            length=int(data["length"]),
            url=data.get("url"),
            user_ref=int(user_ref) if user_ref is not None else None,
            language=data.get("language"),
            custom_emoji_id=data.get("custom_emoji_id"),
        )


@dataclass(slots=True)
class EncodedMessage:
    """Message text together with the spans that format it."""

    text: str
    entities: List[FormattingSpan] = field(default_factory=list)

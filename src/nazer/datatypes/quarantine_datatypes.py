"""
Persistent records of the quarantine system.

All timestamps are INTEGER unix seconds (UTC), matching how they are stored.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.datatypes.telegram_datatypes import ChatID, UserID


def now_ts() -> int:
    """Current time as unix seconds."""
    return int(time.time())


@dataclass(slots=True)
class QuarantineRecord:
    """The single quarantine row of a user.

    ``current_group_id`` is the user's home group while ``is_quarantined`` is
    set. Released records keep their history and get ``ended_at``.
    """

    user_id: UserID
    current_group_id: ChatID
    is_quarantined: bool = True
    started_at: int = field(default_factory=now_ts)
    ended_at: Optional[int] = None
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.username:
            return f"@{self.username}"
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or str(self.user_id)


class QuarantineState(Enum):
    FREE = "free"
    QUARANTINED = "quarantined"
    RELEASED = "released"

    @classmethod
    def of(cls, record: Optional[QuarantineRecord]) -> "QuarantineState":
        """Derive the lifecycle state of a user from their record (or its absence)."""
        if record is None:
            return cls.FREE
        return cls.QUARANTINED if record.is_quarantined else cls.RELEASED


@dataclass(slots=True)
class GroupRecord:
    """A group the bot has administrative visibility into."""

    chat_id: ChatID
    title: str = ""
    chat_type: str = "supergroup"
    is_bot_admin: bool = False
    last_updated: int = field(default_factory=now_ts)


@dataclass(slots=True)
class TriggerConfig:
    """Follow-up message configured for a group.

    Raises:
        ValueError: If ``delay_seconds`` is below one second.
    """

    group_id: ChatID
    name: str
    delay_seconds: int
    second_message_text: str
    second_message_entities: List[FormattingSpan] = field(default_factory=list)

    def __post_init__(self) -> None:
        if int(self.delay_seconds) < 1:
            raise ValueError(f"delay_seconds must be at least 1, got {self.delay_seconds}")
        self.delay_seconds = int(self.delay_seconds)


@dataclass(slots=True)
class UserProfile:
    """A user who started a private conversation with the bot."""

    user_id: UserID
    first_name: str = ""
    username: Optional[str] = None
    created_at: int = field(default_factory=now_ts)

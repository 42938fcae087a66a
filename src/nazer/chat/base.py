"""
Chat platform contract used by the moderation layer.

Only the handful of calls quarantine enforcement needs are modelled here so
that eviction and follow-up logic can be exercised without a live bot.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.datatypes.telegram_datatypes import ChatID, UserID

ADMIN_STATUSES = frozenset({"administrator", "creator"})


class ChatPlatformError(Exception):
    """A platform call failed (network, API or formatting error)."""


class PermissionDenied(ChatPlatformError):
    """The bot lacks the rights needed for the call."""


@dataclass(frozen=True, slots=True)
class MembershipStatus:
    """Membership of one user in one chat.

    ``status`` is the Bot API status string: ``creator``, ``administrator``,
    ``member``, ``restricted``, ``left`` or ``kicked``.
    """

    status: str
    can_restrict_members: bool = False

    @property
    def is_admin(self) -> bool:
        return self.status in ADMIN_STATUSES

    @property
    def can_evict(self) -> bool:
        """True if a member with this status may remove other members."""
        if self.status == "creator":
            return True
        return self.status == "administrator" and self.can_restrict_members


class ChatPlatformClient(ABC):
    """Abstract chat platform used for enforcement and messaging."""

    @property
    @abstractmethod
    def self_id(self) -> UserID:
        """User id of the bot account itself."""

    @abstractmethod
    async def get_membership_status(self, group_id: ChatID, user_id: UserID) -> MembershipStatus:
        ...

    @abstractmethod
    async def remove_member(self, group_id: ChatID, user_id: UserID) -> None:
        ...

    @abstractmethod
    async def restore_member(self, group_id: ChatID, user_id: UserID) -> None:
        """Lift a previous removal so the user may rejoin on their own."""

    @abstractmethod
    async def send_message(
        self,
        group_id: ChatID,
        text: str,
        *,
        entities: Optional[Sequence[FormattingSpan]] = None,
        reply_to: Optional[int] = None,
        parse_mode: Optional[str] = None,
    ) -> int:
        """Send ``text`` and return the id of the sent message."""

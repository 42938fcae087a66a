"""python-telegram-bot implementation of :class:`ChatPlatformClient`."""

from __future__ import annotations

from typing import Optional, Sequence

from telegram import Bot, ReplyParameters
from telegram.error import BadRequest, Forbidden, TelegramError

from nazer.chat.base import ChatPlatformClient, ChatPlatformError, MembershipStatus, PermissionDenied
from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.moderation.entity_codec import to_telegram_entities
from nazer.util.logger import get_logger

logger = get_logger("telegram_client")

# Fragments of BadRequest descriptions that mean "missing rights", not bad input
_RIGHTS_MARKERS = ("not enough rights", "need administrator rights", "chat_admin_required", "can't remove chat owner")


def _translate(exc: TelegramError, action: str) -> ChatPlatformError:
    message = f"{action} failed: {exc.message}"
    if isinstance(exc, Forbidden):
        return PermissionDenied(message)
    if isinstance(exc, BadRequest) and any(marker in exc.message.lower() for marker in _RIGHTS_MARKERS):
        return PermissionDenied(message)
    return ChatPlatformError(message)


class TelegramChatClient(ChatPlatformClient):
    """
    Thin adapter over ``telegram.Bot``.

    Removal is a ban, restoration an unban with ``only_if_banned`` so a user
    who already rejoined is not kicked again. Telegram errors are translated
    to :class:`ChatPlatformError` / :class:`PermissionDenied`.
    """

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    @property
    def self_id(self) -> UserID:
        return UserID(self._bot.id)

    async def get_membership_status(self, group_id: ChatID, user_id: UserID) -> MembershipStatus:
        try:
            member = await self._bot.get_chat_member(chat_id=group_id.to_int(), user_id=user_id.to_int())
        except TelegramError as exc:
            raise _translate(exc, f"get_chat_member({group_id}, {user_id})") from exc
        status = str(getattr(member.status, "value", member.status))
        return MembershipStatus(
            status=status,
            can_restrict_members=bool(getattr(member, "can_restrict_members", False)),
        )

    async def remove_member(self, group_id: ChatID, user_id: UserID) -> None:
        try:
            await self._bot.ban_chat_member(chat_id=group_id.to_int(), user_id=user_id.to_int())
        except TelegramError as exc:
            raise _translate(exc, f"ban_chat_member({group_id}, {user_id})") from exc

    async def restore_member(self, group_id: ChatID, user_id: UserID) -> None:
        try:
            await self._bot.unban_chat_member(
                chat_id=group_id.to_int(), user_id=user_id.to_int(), only_if_banned=True
            )
        except TelegramError as exc:
            raise _translate(exc, f"unban_chat_member({group_id}, {user_id})") from exc

    async def send_message(
        self,
        group_id: ChatID,
        text: str,
        *,
        entities: Optional[Sequence[FormattingSpan]] = None,
        reply_to: Optional[int] = None,
        parse_mode: Optional[str] = None,
    ) -> int:
        reply_parameters = None
        if reply_to is not None:
            reply_parameters = ReplyParameters(message_id=reply_to, allow_sending_without_reply=True)
        try:
            message = await self._bot.send_message(
                chat_id=group_id.to_int(),
                text=text,
                entities=to_telegram_entities(entities) if entities else None,
                parse_mode=parse_mode,
                reply_parameters=reply_parameters,
            )
        except TelegramError as exc:
            raise _translate(exc, f"send_message({group_id})") from exc
        return message.message_id

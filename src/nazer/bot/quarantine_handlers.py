"""
Quarantine handlers.

- ``/trigger1``: explicit quarantine marker in a group.
- ``/trigger2``: release marker.
- chat member updates: a user joining a group is a passive trigger.
"""

from __future__ import annotations

from telegram import Update
from telegram.ext import Application, ChatMemberHandler, CommandHandler, ContextTypes

from nazer.bot.common import (
    GENERIC_ERROR_REPLY,
    GROUP_CHAT_TYPES,
    first_name_of,
    get_services,
    is_present,
)
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.moderation.quarantine import QuarantineResult, ReleaseResult, TriggerSource
from nazer.util.logger import get_logger

logger = get_logger("quarantine_handlers")


async def trigger_quarantine(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if message is None or user is None or chat is None:
        return

    if chat.type not in GROUP_CHAT_TYPES:
        await message.reply_text("This command only works inside a group.")
        return

    try:
        outcome = await get_services(context).quarantine.trigger(
            UserID.from_user(user),
            ChatID.from_chat(chat),
            source=TriggerSource.EXPLICIT,
            first_name=user.first_name or "",
            last_name=user.last_name,
            username=user.username,
            reply_to_message_id=message.message_id,
        )
    except Exception as exc:
        logger.exception("[QUARANTINE HANDLERS] /trigger1 failed for %s: %s", user.id, exc)
        await message.reply_text(GENERIC_ERROR_REPLY)
        return

    name = first_name_of(user)
    if outcome.result is QuarantineResult.ALREADY_QUARANTINED:
        await message.reply_text("⚠️ You are already in quarantine. Use /trigger2 to leave it.")
    elif outcome.result is QuarantineResult.QUARANTINED:
        await message.reply_text(
            f"✅ Trigger 1 activated for {name}. Removed from {outcome.evicted_count} other group(s)."
        )
    elif outcome.result is QuarantineResult.TRANSFERRED:
        await message.reply_text(
            f"✅ Quarantine for {name} moved to this group. "
            f"Removed from {outcome.evicted_count} other group(s)."
        )
    else:
        await message.reply_text(GENERIC_ERROR_REPLY)


async def release_quarantine(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    if message is None or user is None:
        return

    try:
        outcome = await get_services(context).quarantine.release(UserID.from_user(user))
    except Exception as exc:
        logger.exception("[QUARANTINE HANDLERS] /trigger2 failed for %s: %s", user.id, exc)
        await message.reply_text(GENERIC_ERROR_REPLY)
        return

    if outcome.result is ReleaseResult.NOT_QUARANTINED:
        await message.reply_text("❌ You are not currently in quarantine.")
    elif outcome.result is ReleaseResult.RELEASED:
        await message.reply_text(
            f"✅ Trigger 2 activated for {first_name_of(user)} and your quarantine has ended."
        )
    else:
        await message.reply_text(GENERIC_ERROR_REPLY)


async def on_member_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    change = update.chat_member
    if change is None or change.chat.type not in GROUP_CHAT_TYPES:
        return

    joined_user = change.new_chat_member.user
    if joined_user.is_bot:
        return
    if is_present(change.old_chat_member) or not is_present(change.new_chat_member):
        return

    try:
        outcome = await get_services(context).quarantine.trigger(
            UserID.from_user(joined_user),
            ChatID.from_chat(change.chat),
            source=TriggerSource.JOIN,
            first_name=joined_user.first_name or "",
            last_name=joined_user.last_name,
            username=joined_user.username,
        )
    except Exception as exc:
        logger.exception("[QUARANTINE HANDLERS] Join handling failed for %s in %s: %s",
                         joined_user.id, change.chat.id, exc)
        return

    logger.debug("[QUARANTINE HANDLERS] Join of %s in %s -> %s",
                 joined_user.id, change.chat.id, outcome.result.value)


def setup(application: Application) -> None:
    """Register the quarantine handlers with the application."""
    application.add_handler(CommandHandler("trigger1", trigger_quarantine))
    application.add_handler(CommandHandler("trigger2", release_quarantine))
    application.add_handler(ChatMemberHandler(on_member_update, ChatMemberHandler.CHAT_MEMBER))

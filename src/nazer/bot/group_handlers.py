"""
Group management handlers.

- bot membership updates keep ``managed_groups`` in sync with the bot's rights.
- ``/register_group`` lets an administrator register the current group.
- ``/settrigger <delay> [name]``, sent as a reply, stores the replied-to
  message (with its formatting) as the group's follow-up.
"""

from __future__ import annotations

from telegram import Update
from telegram.ext import Application, ChatMemberHandler, CommandHandler, ContextTypes

from nazer.bot.common import GENERIC_ERROR_REPLY, GROUP_CHAT_TYPES, get_services, status_value
from nazer.chat.base import ADMIN_STATUSES, ChatPlatformError
from nazer.datatypes.quarantine_datatypes import GroupRecord, TriggerConfig
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.moderation.entity_codec import encode
from nazer.util.logger import get_logger

logger = get_logger("group_handlers")

DEFAULT_TRIGGER_NAME = "default"


async def on_bot_membership_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    change = update.my_chat_member
    if change is None or change.chat.type not in GROUP_CHAT_TYPES:
        return

    status = status_value(change.new_chat_member.status)
    group = GroupRecord(
        chat_id=ChatID.from_chat(change.chat),
        title=change.chat.title or "",
        chat_type=status_value(change.chat.type),
        is_bot_admin=status in ADMIN_STATUSES,
    )
    logger.info("[GROUP HANDLERS] Bot status in %s (%s) is now %s", group.title, group.chat_id, status)
    await get_services(context).register_group(group)


async def _require_group_admin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    message = update.effective_message
    chat = update.effective_chat
    user = update.effective_user
    if chat is None or chat.type not in GROUP_CHAT_TYPES:
        await message.reply_text("This command only works inside a group.")
        return False
    if not await get_services(context).is_chat_admin(ChatID.from_chat(chat), UserID.from_user(user)):
        await message.reply_text("Only group administrators can use this command.")
        return False
    return True


async def register_group(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None or update.effective_user is None:
        return

    try:
        if not await _require_group_admin(update, context):
            return
        services = get_services(context)
        chat = update.effective_chat
        rights = await services.client.get_membership_status(ChatID.from_chat(chat), services.client.self_id)
        saved = await services.register_group(
            GroupRecord(
                chat_id=ChatID.from_chat(chat),
                title=chat.title or "",
                chat_type=status_value(chat.type),
                is_bot_admin=rights.is_admin,
            )
        )
    except ChatPlatformError as exc:
        logger.warning("[GROUP HANDLERS] /register_group failed: %s", exc)
        await message.reply_text(GENERIC_ERROR_REPLY)
        return

    if not saved:
        await message.reply_text(GENERIC_ERROR_REPLY)
    elif rights.can_evict:
        await message.reply_text("✅ Group registered. Quarantine will be enforced here.")
    else:
        await message.reply_text(
            "⚠️ Group registered, but I need admin rights with 'ban users' to enforce quarantine here."
        )


async def set_trigger(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None or update.effective_user is None:
        return

    usage = "Reply to the follow-up message with /settrigger <delay seconds> [name]."
    try:
        if not await _require_group_admin(update, context):
            return
    except ChatPlatformError as exc:
        logger.warning("[GROUP HANDLERS] Admin check for /settrigger failed: %s", exc)
        await message.reply_text(GENERIC_ERROR_REPLY)
        return

    source = message.reply_to_message
    args = context.args or []
    if source is None or not args:
        await message.reply_text(usage)
        return

    try:
        delay = int(args[0])
        text = source.text if source.text is not None else source.caption
        if not text:
            raise ValueError("the replied message has no text")
        entities = source.entities if source.text is not None else source.caption_entities
        encoded = encode(text, entities)
        config = TriggerConfig(
            group_id=ChatID.from_chat(update.effective_chat),
            name=" ".join(args[1:]) or DEFAULT_TRIGGER_NAME,
            delay_seconds=delay,
            second_message_text=encoded.text,
            second_message_entities=encoded.entities,
        )
    except ValueError as exc:
        await message.reply_text(f"{usage}\n({exc})")
        return

    if await get_services(context).save_trigger_config(config):
        await message.reply_text(
            f"✅ Follow-up '{config.name}' saved; it will be sent {config.delay_seconds}s after a quarantine starts."
        )
    else:
        await message.reply_text(GENERIC_ERROR_REPLY)


def setup(application: Application) -> None:
    """Register the group management handlers with the application."""
    application.add_handler(ChatMemberHandler(on_bot_membership_update, ChatMemberHandler.MY_CHAT_MEMBER))
    application.add_handler(CommandHandler("register_group", register_group))
    application.add_handler(CommandHandler("settrigger", set_trigger))

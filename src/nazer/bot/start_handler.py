"""``/start``: remember the user and greet them."""

from __future__ import annotations

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from nazer.bot.common import first_name_of, get_services
from nazer.datatypes.quarantine_datatypes import UserProfile
from nazer.datatypes.telegram_datatypes import UserID
from nazer.util.logger import get_logger

logger = get_logger("start_handler")

FALLBACK_GREETING = "Hi! I'm Nazer, the quarantine watcher. The bot is up and running."


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    if message is None or user is None:
        return

    saved = await get_services(context).register_user(
        UserProfile(user_id=UserID.from_user(user), first_name=user.first_name or "", username=user.username)
    )
    if saved:
        await message.reply_text(f"Hi {first_name_of(user)}! Welcome to the bot. 😊")
    else:
        await message.reply_text(FALLBACK_GREETING)


def setup(application: Application) -> None:
    application.add_handler(CommandHandler("start", start))

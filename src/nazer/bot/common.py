"""Helpers shared by the update handlers."""

from __future__ import annotations

from typing import Any, Optional

from telegram.ext import ContextTypes

from nazer.services.context import ServiceContext

SERVICES_KEY = "services"
GROUP_CHAT_TYPES = ("group", "supergroup")

GENERIC_ERROR_REPLY = "❌ Something went wrong while running this command."


def get_services(context: ContextTypes.DEFAULT_TYPE) -> ServiceContext:
    """Return the ``ServiceContext`` stored in ``application.bot_data``."""
    return context.application.bot_data[SERVICES_KEY]


def status_value(status: Any) -> str:
    return str(getattr(status, "value", status))


def is_present(member: Optional[Any]) -> bool:
    """True if a ``ChatMember`` snapshot counts as being in the chat."""
    if member is None:
        return False
    status = status_value(member.status)
    if status in ("member", "administrator", "creator"):
        return True
    return status == "restricted" and bool(getattr(member, "is_member", False))


def first_name_of(user: Optional[Any]) -> str:
    return (getattr(user, "first_name", None) or "there") if user else "there"

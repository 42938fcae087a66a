"""
Delayed follow-up messages.

A follow-up is a second message a group has configured to be sent some
seconds after a user enters quarantine there. Each send runs in its own
detached asyncio task, so the update handler that scheduled it returns right
away. Pending sends live only in memory and are lost on restart.
"""

from __future__ import annotations

import asyncio
import html
import itertools
from typing import Dict, Hashable, Optional, Sequence

from telegram.constants import ParseMode
from telegram.helpers import escape_markdown

from nazer.chat.base import ChatPlatformClient, ChatPlatformError
from nazer.datatypes.message_datatypes import FormattingSpan
from nazer.datatypes.telegram_datatypes import ChatID
from nazer.util.logger import get_logger

logger = get_logger("followup_dispatcher")

MIN_DELAY_SECONDS = 1


def escape_for_parse_mode(text: str, parse_mode: str) -> str:
    """Escape ``text`` so it renders literally under ``parse_mode``."""
    if parse_mode == ParseMode.HTML:
        return html.escape(text, quote=False)
    if parse_mode == ParseMode.MARKDOWN_V2:
        return escape_markdown(text, version=2)
    if parse_mode == ParseMode.MARKDOWN:
        return escape_markdown(text, version=1)
    return text


class FollowUpDispatcher:
    """
    Schedules one-shot delayed sends and tracks them by key.

    Keys are normally ``(user_id, group_id, trigger_name)``; scheduling the
    same key again replaces the earlier pending send.
    """

    def __init__(self, client: ChatPlatformClient, fallback_parse_mode: str = "HTML") -> None:
        self.client = client
        self.fallback_parse_mode = fallback_parse_mode
        self._pending: Dict[Hashable, asyncio.Task] = {}
        self._anonymous = itertools.count(1)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule_follow_up(
        self,
        group_id: ChatID,
        text: str,
        entities: Sequence[FormattingSpan],
        reply_to_message_id: Optional[int],
        delay_seconds: float,
        *,
        key: Optional[Hashable] = None,
    ) -> asyncio.Task:
        """
        Send ``text`` with ``entities`` to ``group_id`` after ``delay_seconds``.

        Returns the detached task; callers are not expected to await it.
        """
        if delay_seconds < MIN_DELAY_SECONDS:
            logger.warning(
                "[FOLLOW-UP] Delay %.2fs for group %s is below the minimum; using %ds",
                delay_seconds, group_id, MIN_DELAY_SECONDS,
            )
            delay_seconds = MIN_DELAY_SECONDS

        if key is None:
            key = ("anonymous", next(self._anonymous))
        previous = self._pending.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug("[FOLLOW-UP] Replaced pending follow-up %s", key)

        task = asyncio.get_running_loop().create_task(
            self._send_later(group_id, text, list(entities), reply_to_message_id, delay_seconds),
            name=f"nazer-follow-up-{group_id}",
        )
        self._pending[key] = task

        def _cleanup(completed: asyncio.Task) -> None:
            if self._pending.get(key) is completed:
                del self._pending[key]

        task.add_done_callback(_cleanup)
        logger.info("[FOLLOW-UP] Scheduled follow-up for group %s in %.0fs", group_id, delay_seconds)
        return task

    async def _send_later(
        self,
        group_id: ChatID,
        text: str,
        entities: Sequence[FormattingSpan],
        reply_to_message_id: Optional[int],
        delay_seconds: float,
    ) -> bool:
        await asyncio.sleep(delay_seconds)
        try:
            return await self.send_with_fallback(group_id, text, entities, reply_to_message_id)
        except Exception as exc:
            logger.exception("[FOLLOW-UP] Unexpected error sending follow-up to %s: %s", group_id, exc)
            return False

    async def send_with_fallback(
        self,
        group_id: ChatID,
        text: str,
        entities: Sequence[FormattingSpan],
        reply_to_message_id: Optional[int] = None,
    ) -> bool:
        """
        Send with the stored entities; on failure retry once as plain markup.

        The retry escapes ``text`` for the fallback parse mode, so it shows
        up literally instead of being rejected as broken markup.

        Returns:
            bool: True if either attempt was delivered. A second failure is
            logged and swallowed.
        """
        try:
            await self.client.send_message(
                group_id, text, entities=list(entities) or None, reply_to=reply_to_message_id
            )
            return True
        except ChatPlatformError as exc:
            logger.warning("[FOLLOW-UP] Formatted send to %s failed, retrying as %s: %s",
                           group_id, self.fallback_parse_mode, exc)

        try:
            await self.client.send_message(
                group_id,
                escape_for_parse_mode(text, self.fallback_parse_mode),
                reply_to=reply_to_message_id,
                parse_mode=self.fallback_parse_mode,
            )
            return True
        except ChatPlatformError as exc:
            logger.error("[FOLLOW-UP] Follow-up to %s dropped after fallback failed: %s", group_id, exc)
            return False

    def cancel(self, key: Hashable) -> bool:
        """Cancel a pending follow-up; True if one was pending."""
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel every pending follow-up and wait for the tasks to finish."""
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("[FOLLOW-UP] Cancelled %d pending follow-ups", len(tasks))

"""
Group eviction orchestrator.

Removes a quarantined user from every managed group except their home group.
All groups are processed concurrently and every attempt is awaited, whether
it succeeds or fails; a failure in one group never affects another. Only the
number of successful evictions is reported upward.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from nazer.cache import TTLCache, bot_rights_key
from nazer.chat.base import ChatPlatformClient, ChatPlatformError, MembershipStatus, PermissionDenied
from nazer.database.membership_store import GroupFilter, MembershipStore, StoreError
from nazer.datatypes.quarantine_datatypes import GroupRecord
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.scheduler.restore_scheduler import RestoreScheduler
from nazer.util.logger import get_logger

logger = get_logger("eviction")


@dataclass(frozen=True, slots=True)
class EvictionAttempt:
    """Outcome of removing one user from one group."""

    group_id: ChatID
    success: bool
    reason: str = ""


class GroupEvictionOrchestrator:
    """
    Fans eviction out over all managed groups.

    Args:
        store: Source of the managed group list.
        client: Platform used to check rights and remove members.
        cache: Shared cache; the bot's rights per group are cached here.
        restore_scheduler: Lifts each removal after ``restore_delay_seconds``.
        restore_delay_seconds: Delay before a removed user may rejoin.
    """

    def __init__(
        self,
        store: MembershipStore,
        client: ChatPlatformClient,
        cache: TTLCache,
        restore_scheduler: RestoreScheduler,
        restore_delay_seconds: float = 1.0,
    ) -> None:
        self.store = store
        self.client = client
        self.cache = cache
        self.restore_scheduler = restore_scheduler
        self.restore_delay_seconds = restore_delay_seconds

    async def evict_from_all_except(self, user_id: UserID, home_group_id: ChatID) -> int:
        """
        Remove ``user_id`` from every bot-administered group but ``home_group_id``.

        Returns:
            int: Number of groups the user was removed from. A store failure
            while listing groups yields 0.
        """
        user_id = UserID(user_id)
        home_group_id = ChatID(home_group_id)
        try:
            groups = await self.store.query_groups(GroupFilter(bot_is_admin=True))
        except StoreError as exc:
            logger.error("[EVICTION] Could not list managed groups for user %s: %s", user_id, exc)
            return 0

        targets = [group for group in groups if group.chat_id != home_group_id]
        if not targets:
            logger.debug("[EVICTION] No other managed groups to evict user %s from", user_id)
            return 0

        results = await asyncio.gather(
            *(self._attempt(user_id, group) for group in targets),
            return_exceptions=True,
        )

        attempts: List[EvictionAttempt] = []
        for group, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error("[EVICTION] Unexpected error evicting %s from %s: %r", user_id, group.chat_id, result)
                attempts.append(EvictionAttempt(group.chat_id, False, repr(result)))
            else:
                attempts.append(result)

        succeeded = sum(1 for attempt in attempts if attempt.success)
        logger.info(
            "[EVICTION] User %s (home %s): evicted from %d/%d groups",
            user_id, home_group_id, succeeded, len(attempts),
        )
        return succeeded

    async def evict_from_group(self, user_id: UserID, group: GroupRecord) -> bool:
        """Evict ``user_id`` from a single group; True on success."""
        attempt = await self._attempt(UserID(user_id), group)
        return attempt.success

    # ------------------------------------------------------------------
    # Per-group attempt
    # ------------------------------------------------------------------

    async def _bot_rights(self, group_id: ChatID) -> MembershipStatus:
        key = bot_rights_key(group_id)
        cached: Optional[MembershipStatus] = self.cache.get(key)
        if cached is not None:
            return cached
        status = await self.client.get_membership_status(group_id, self.client.self_id)
        self.cache.set(key, status)
        return status

    async def _attempt(self, user_id: UserID, group: GroupRecord) -> EvictionAttempt:
        group_id = group.chat_id
        try:
            rights = await self._bot_rights(group_id)
            if not rights.can_evict:
                logger.warning(
                    "[EVICTION] Skipping %s (%s): bot is %s without restrict rights",
                    group.title or group_id, group_id, rights.status,
                )
                return EvictionAttempt(group_id, False, f"bot status {rights.status}")

            await self.client.remove_member(group_id, user_id)
        except PermissionDenied as exc:
            self.cache.delete(bot_rights_key(group_id))
            logger.warning("[EVICTION] No permission to evict %s from %s: %s", user_id, group_id, exc)
            return EvictionAttempt(group_id, False, str(exc))
        except ChatPlatformError as exc:
            logger.warning("[EVICTION] Failed to evict %s from %s: %s", user_id, group_id, exc)
            return EvictionAttempt(group_id, False, str(exc))

        try:
            await self.restore_scheduler.schedule(group_id, user_id, self.restore_delay_seconds)
        except Exception as exc:
            # The removal itself succeeded; only the later unban is missing
            logger.error("[EVICTION] Could not schedule restore of %s in %s: %s", user_id, group_id, exc)

        logger.info("[EVICTION] Evicted %s from %s (%s)", user_id, group.title or group_id, group_id)
        return EvictionAttempt(group_id, True)

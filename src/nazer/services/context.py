"""
Process-wide service context.

Owns the shared cache, the store, the platform client and the moderation
services built on them, and manages their startup and shutdown. Handlers
reach everything through one ``ServiceContext`` instance instead of module
globals.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional

from nazer.cache import TTLCache, admin_key, bot_rights_key, trigger_key
from nazer.chat.base import ChatPlatformClient, MembershipStatus
from nazer.configuration.app_configuration import AppConfig
from nazer.database.membership_store import MembershipStore, RecordKind, SQLiteMembershipStore, StoreError
from nazer.datatypes.quarantine_datatypes import GroupRecord, QuarantineRecord, TriggerConfig, UserProfile
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.moderation.eviction import GroupEvictionOrchestrator
from nazer.moderation.quarantine import QuarantineService
from nazer.scheduler.followup_dispatcher import FollowUpDispatcher
from nazer.scheduler.restore_scheduler import RestoreScheduler
from nazer.util.logger import get_logger

logger = get_logger("service_context")


@dataclass(frozen=True, slots=True)
class HealthReport:
    """Snapshot shown by the console ``status`` command."""

    uptime_seconds: float
    cache_entries: int
    store_reachable: bool
    pending_follow_ups: int
    pending_restores: int


class ServiceContext:
    """
    Wires the moderation components together.

    Args:
        config: Application configuration (cache, eviction and follow-up tunables).
        client: Chat platform client.
        store: Membership store; defaults to SQLite at ``config.database_path``.
        cache: Shared cache; defaults to one built from ``config``.
    """

    def __init__(
        self,
        config: AppConfig,
        client: ChatPlatformClient,
        store: Optional[MembershipStore] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.store = store or SQLiteMembershipStore(config.database_path)
        self.cache = cache or TTLCache(
            default_ttl=config.cache_ttl_seconds,
            sweep_interval=config.cache_sweep_interval,
        )
        self.restore_scheduler = RestoreScheduler(client)
        self.orchestrator = GroupEvictionOrchestrator(
            self.store,
            client,
            self.cache,
            self.restore_scheduler,
            restore_delay_seconds=config.restore_delay_seconds,
        )
        self.dispatcher = FollowUpDispatcher(client, fallback_parse_mode=config.fallback_parse_mode)
        self.quarantine = QuarantineService(self.cache, self.store, self.orchestrator, self.dispatcher)
        self._started_at = time.monotonic()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Initialize the store and start the cache sweep.

        Raises:
            StoreError: If the store cannot be initialized; the bot must not start.
        """
        if isinstance(self.store, SQLiteMembershipStore):
            await self.store.initialize()
        self.cache.start_sweeper()
        self._started_at = time.monotonic()
        logger.info("[SERVICES] Started (cache ttl=%.0fs)", self.cache.default_ttl)

    async def shutdown(self) -> None:
        """Stop background work and close the store; each step is isolated."""
        for name, step in (
            ("follow-up dispatcher", self.dispatcher.shutdown),
            ("restore scheduler", self.restore_scheduler.shutdown),
            ("cache sweep", self.cache.shutdown),
        ):
            try:
                await step()
            except Exception as exc:
                logger.exception("[SERVICES] Error stopping %s: %s", name, exc)

        if isinstance(self.store, SQLiteMembershipStore):
            try:
                await self.store.close()
            except Exception as exc:
                logger.exception("[SERVICES] Error closing store: %s", exc)
        logger.info("[SERVICES] Shutdown complete")

    async def health(self) -> HealthReport:
        return HealthReport(
            uptime_seconds=time.monotonic() - self._started_at,
            cache_entries=self.cache.stats()["count"],
            store_reachable=await self.store.ping(),
            pending_follow_ups=self.dispatcher.pending_count,
            pending_restores=self.restore_scheduler.pending_count,
        )

    async def list_quarantined(self, group_id: ChatID) -> List[QuarantineRecord]:
        """Active quarantines whose home is ``group_id``, oldest first."""
        return list(await self.store.list_active_quarantines(ChatID(group_id)))

    # ------------------------------------------------------------------
    # Writes used by the bot surface (each followed by invalidation)
    # ------------------------------------------------------------------

    async def register_group(self, group: GroupRecord) -> bool:
        try:
            await self.store.upsert(RecordKind.GROUP, group)
        except StoreError as exc:
            logger.error("[SERVICES] Could not save group %s: %s", group.chat_id, exc)
            return False
        finally:
            self.cache.delete(bot_rights_key(group.chat_id))
        logger.info(
            "[SERVICES] Group %s (%s) saved, bot admin=%s", group.title, group.chat_id, group.is_bot_admin
        )
        return True

    async def save_trigger_config(self, config: TriggerConfig) -> bool:
        try:
            await self.store.upsert(RecordKind.TRIGGER, config)
        except StoreError as exc:
            logger.error("[SERVICES] Could not save trigger for %s: %s", config.group_id, exc)
            return False
        finally:
            self.cache.delete(trigger_key(config.group_id))
        logger.info("[SERVICES] Trigger '%s' saved for group %s", config.name, config.group_id)
        return True

    async def register_user(self, profile: UserProfile) -> bool:
        try:
            await self.store.upsert(RecordKind.USER, profile)
        except StoreError as exc:
            logger.error("[SERVICES] Could not save user %s: %s", profile.user_id, exc)
            return False
        return True

    async def is_chat_admin(self, group_id: ChatID, user_id: UserID) -> bool:
        """True if ``user_id`` administers ``group_id``; cached per pair."""
        key = admin_key(group_id, user_id)
        cached: Optional[MembershipStatus] = self.cache.get(key)
        if cached is None:
            cached = await self.client.get_membership_status(ChatID(group_id), UserID(user_id))
            self.cache.set(key, cached)
        return cached.is_admin

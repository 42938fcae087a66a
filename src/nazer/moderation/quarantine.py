"""
Quarantine state machine.

A user is FREE (no record), QUARANTINED in exactly one home group, or
RELEASED (record kept, flag cleared; behaves like FREE for new triggers).

Transitions:

* FREE/RELEASED -> QUARANTINED(g): explicit marker or new-member join in ``g``.
  Persists the record, invalidates the cache, evicts the user from every other
  managed group and schedules the follow-up configured for ``g``.
* QUARANTINED(g) triggered again in ``g``: nothing changes.
* QUARANTINED(g1), explicit marker in g2: quarantine moves to g2 and eviction
  runs against every other group, g1 included.
* QUARANTINED(g1), join of g2: the user is evicted from g2; the home group
  stays g1.
* QUARANTINED(g) -> RELEASED: explicit release marker.

Store failures are logged and reported as a FAILED outcome; nothing raises
out of this module for a flaky store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from nazer.cache import TTLCache, quarantine_key, trigger_key
from nazer.database.membership_store import MembershipStore, RecordKind, StoreError
from nazer.datatypes.quarantine_datatypes import (
    GroupRecord,
    QuarantineRecord,
    QuarantineState,
    TriggerConfig,
    now_ts,
)
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.moderation.eviction import GroupEvictionOrchestrator
from nazer.scheduler.followup_dispatcher import FollowUpDispatcher
from nazer.util.logger import get_logger

logger = get_logger("quarantine")


class TriggerSource(Enum):
    EXPLICIT = "explicit"
    JOIN = "join"


class QuarantineResult(Enum):
    QUARANTINED = "quarantined"
    TRANSFERRED = "transferred"
    ALREADY_QUARANTINED = "already_quarantined"
    EVICTED_FROM_JOINED_GROUP = "evicted_from_joined_group"
    FAILED = "failed"


class ReleaseResult(Enum):
    RELEASED = "released"
    NOT_QUARANTINED = "not_quarantined"
    FAILED = "failed"


@dataclass(slots=True)
class QuarantineOutcome:
    result: QuarantineResult
    record: Optional[QuarantineRecord] = None
    evicted_count: int = 0
    follow_up_scheduled: bool = False


@dataclass(slots=True)
class ReleaseOutcome:
    result: ReleaseResult
    record: Optional[QuarantineRecord] = None


class QuarantineService:
    """Applies quarantine transitions; owns no state beyond its collaborators."""

    def __init__(
        self,
        cache: TTLCache,
        store: MembershipStore,
        orchestrator: GroupEvictionOrchestrator,
        dispatcher: FollowUpDispatcher,
    ) -> None:
        self.cache = cache
        self.store = store
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def check_quarantine(self, user_id: UserID) -> Optional[QuarantineRecord]:
        """
        Return the user's active quarantine record, or ``None``.

        Looks in the cache first. Only active records are cached so a release
        is visible immediately; a store failure reads as "not quarantined".
        """
        user_id = UserID(user_id)
        key = quarantine_key(user_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            record = await self.store.get_record(RecordKind.QUARANTINE, user_id)
        except StoreError as exc:
            logger.error("[QUARANTINE] Lookup for user %s failed: %s", user_id, exc)
            return None

        if QuarantineState.of(record) is not QuarantineState.QUARANTINED:
            return None
        self.cache.set(key, record)
        return record

    async def get_trigger_config(self, group_id: ChatID) -> Optional[TriggerConfig]:
        """Follow-up configuration of ``group_id`` (cached), or ``None``."""
        group_id = ChatID(group_id)
        key = trigger_key(group_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            config = await self.store.get_record(RecordKind.TRIGGER, group_id)
        except StoreError as exc:
            logger.error("[QUARANTINE] Trigger lookup for group %s failed: %s", group_id, exc)
            return None
        if config is not None:
            self.cache.set(key, config)
        return config

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def trigger(
        self,
        user_id: UserID,
        group_id: ChatID,
        *,
        source: TriggerSource = TriggerSource.EXPLICIT,
        first_name: str = "",
        last_name: Optional[str] = None,
        username: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
    ) -> QuarantineOutcome:
        """Apply a quarantine trigger for ``user_id`` in ``group_id``."""
        user_id = UserID(user_id)
        group_id = ChatID(group_id)
        existing = await self.check_quarantine(user_id)

        if existing is not None and existing.current_group_id == group_id:
            logger.debug("[QUARANTINE] User %s already quarantined in %s", user_id, group_id)
            return QuarantineOutcome(QuarantineResult.ALREADY_QUARANTINED, existing)

        if existing is not None and source is TriggerSource.JOIN:
            logger.info(
                "[QUARANTINE] User %s joined %s while quarantined in %s; evicting from the new group",
                user_id, group_id, existing.current_group_id,
            )
            evicted = await self.orchestrator.evict_from_group(user_id, await self._group(group_id))
            return QuarantineOutcome(
                QuarantineResult.EVICTED_FROM_JOINED_GROUP, existing, evicted_count=int(evicted)
            )

        if existing is not None:
            previous_group = existing.current_group_id
            record = QuarantineRecord(
                user_id=user_id,
                current_group_id=group_id,
                is_quarantined=True,
                started_at=existing.started_at,
                ended_at=None,
                first_name=first_name or existing.first_name,
                last_name=last_name if last_name is not None else existing.last_name,
                username=username if username is not None else existing.username,
            )
            result = QuarantineResult.TRANSFERRED
            logger.info("[QUARANTINE] Moving quarantine of %s from %s to %s", user_id, previous_group, group_id)
        else:
            record = QuarantineRecord(
                user_id=user_id,
                current_group_id=group_id,
                is_quarantined=True,
                started_at=now_ts(),
                first_name=first_name,
                last_name=last_name,
                username=username,
            )
            result = QuarantineResult.QUARANTINED
            logger.info("[QUARANTINE] Quarantining %s in %s (%s)", user_id, group_id, source.value)

        if not await self._persist(record):
            return QuarantineOutcome(QuarantineResult.FAILED)

        evicted = await self.orchestrator.evict_from_all_except(user_id, group_id)
        scheduled = await self._schedule_follow_up(user_id, group_id, reply_to_message_id)
        return QuarantineOutcome(result, record, evicted_count=evicted, follow_up_scheduled=scheduled)

    async def release(self, user_id: UserID) -> ReleaseOutcome:
        """End the user's quarantine; no store write when none is active."""
        user_id = UserID(user_id)
        existing = await self.check_quarantine(user_id)
        if existing is None:
            return ReleaseOutcome(ReleaseResult.NOT_QUARANTINED)

        released = QuarantineRecord(
            user_id=existing.user_id,
            current_group_id=existing.current_group_id,
            is_quarantined=False,
            started_at=existing.started_at,
            ended_at=now_ts(),
            first_name=existing.first_name,
            last_name=existing.last_name,
            username=existing.username,
        )
        if not await self._persist(released):
            return ReleaseOutcome(ReleaseResult.FAILED, existing)

        logger.info("[QUARANTINE] Released %s from quarantine in %s", user_id, existing.current_group_id)
        return ReleaseOutcome(ReleaseResult.RELEASED, released)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _persist(self, record: QuarantineRecord) -> bool:
        try:
            await self.store.upsert(RecordKind.QUARANTINE, record)
        except StoreError as exc:
            logger.error("[QUARANTINE] Could not persist record of %s: %s", record.user_id, exc)
            return False
        finally:
            self.cache.delete(quarantine_key(record.user_id))
        return True

    async def _group(self, group_id: ChatID) -> GroupRecord:
        try:
            group = await self.store.get_record(RecordKind.GROUP, group_id)
        except StoreError as exc:
            logger.warning("[QUARANTINE] Group lookup for %s failed: %s", group_id, exc)
            group = None
        return group or GroupRecord(chat_id=group_id)

    async def _schedule_follow_up(
        self, user_id: UserID, group_id: ChatID, reply_to_message_id: Optional[int]
    ) -> bool:
        config = await self.get_trigger_config(group_id)
        if config is None:
            return False
        self.dispatcher.schedule_follow_up(
            group_id,
            config.second_message_text,
            config.second_message_entities,
            reply_to_message_id,
            config.delay_seconds,
            key=(str(user_id), str(group_id), config.name),
        )
        return True

"""
Delayed membership restoration after an eviction.

An eviction bans the user and then, after a short fixed delay, lifts the ban
again so the user is out of the group but can rejoin manually later. The
scheduler keeps one pending job per ``(group, user)`` in a min-heap processed
by a single background task.
"""
import asyncio
import heapq
from dataclasses import dataclass
from typing import Dict, Tuple

from nazer.chat.base import ChatPlatformClient, ChatPlatformError
from nazer.datatypes.telegram_datatypes import ChatID, UserID
from nazer.util.logger import get_logger

logger = get_logger("restore_scheduler")


@dataclass(frozen=True)
class RestoreJob:
    """Membership of ``user_id`` in ``group_id`` to restore."""
    group_id: ChatID
    user_id: UserID

    @property
    def key(self) -> Tuple[str, str]:
        return (str(self.group_id), str(self.user_id))


class RestoreScheduler:
    """
    Min-heap scheduler for delayed restorations.

    Rescheduling a pending ``(group, user)`` replaces the earlier job, and
    cancelled jobs are skipped lazily when they reach the top of the heap.

    Attributes:
        heap (list): Min-heap of (run_at, job_id, job) tuples.
        pending_keys (Dict): Maps (group_id, user_id) to the live job_id.
        cancelled_ids (set): Job ids to skip when popped.
    """

    def __init__(self, client: ChatPlatformClient) -> None:
        self.client = client
        self.heap: list[tuple[float, int, RestoreJob]] = []
        self.pending_keys: Dict[Tuple[str, str], int] = {}
        self.cancelled_ids: set[int] = set()
        self.counter: int = 0
        self.runner_task: asyncio.Task[None] | None = None
        self.condition: asyncio.Condition = asyncio.Condition()

    def ensure_runner(self) -> None:
        """Create the background runner task if it is not already active."""
        if self.runner_task is None or self.runner_task.done():
            self.runner_task = asyncio.get_running_loop().create_task(
                self.run(), name="nazer-restore-scheduler"
            )

    @property
    def pending_count(self) -> int:
        return len(self.pending_keys)

    async def schedule(self, group_id: ChatID, user_id: UserID, delay_seconds: float) -> None:
        """
        Restore ``user_id`` in ``group_id`` after ``delay_seconds``.

        Non-positive delays restore immediately.
        """
        job = RestoreJob(group_id=ChatID(group_id), user_id=UserID(user_id))

        if delay_seconds <= 0:
            await self.execute(job)
            return

        run_at = asyncio.get_running_loop().time() + delay_seconds

        async with self.condition:
            self.ensure_runner()
            if job.key in self.pending_keys:
                self.cancelled_ids.add(self.pending_keys[job.key])

            self.counter += 1
            job_id = self.counter
            heapq.heappush(self.heap, (run_at, job_id, job))
            self.pending_keys[job.key] = job_id
            self.condition.notify_all()

    async def cancel(self, group_id: ChatID, user_id: UserID) -> bool:
        """Cancel a pending restoration; True if one was pending."""
        async with self.condition:
            job_id = self.pending_keys.pop((str(group_id), str(user_id)), None)
            if job_id is None:
                return False
            self.cancelled_ids.add(job_id)
            self.condition.notify_all()
            return True

    async def shutdown(self) -> None:
        """Stop the runner and drop all pending jobs. Safe to call twice."""
        async with self.condition:
            if self.runner_task:
                self.runner_task.cancel()
            if self.pending_keys:
                logger.warning("[RESTORE] Dropping %d pending restorations on shutdown", len(self.pending_keys))
            self.heap.clear()
            self.pending_keys.clear()
            self.cancelled_ids.clear()
            self.condition.notify_all()

        if self.runner_task:
            try:
                await self.runner_task
            except asyncio.CancelledError:
                pass
            finally:
                self.runner_task = None

    async def run(self) -> None:
        """Background loop: wait for the earliest job, then execute it."""
        loop = asyncio.get_running_loop()
        while True:
            async with self.condition:
                while self.heap and self.heap[0][1] in self.cancelled_ids:
                    _, job_id, _ = heapq.heappop(self.heap)
                    self.cancelled_ids.discard(job_id)

                if not self.heap:
                    await self.condition.wait()
                    continue

                run_at, _, _ = self.heap[0]
                delay = run_at - loop.time()

                if delay > 0:
                    try:
                        await asyncio.wait_for(self.condition.wait(), timeout=delay)
                    except asyncio.TimeoutError:
                        pass
                    continue

                _, job_id, job = heapq.heappop(self.heap)
                if self.pending_keys.get(job.key) == job_id:
                    del self.pending_keys[job.key]

            try:
                await self.execute(job)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[RESTORE] Unexpected failure restoring %s in %s: %s", job.user_id, job.group_id, exc)

    async def execute(self, job: RestoreJob) -> bool:
        """Lift the removal; failures are logged, never raised."""
        try:
            await self.client.restore_member(job.group_id, job.user_id)
        except ChatPlatformError as exc:
            logger.warning("[RESTORE] Could not restore %s in %s: %s", job.user_id, job.group_id, exc)
            return False
        logger.debug("[RESTORE] Restored membership of %s in %s", job.user_id, job.group_id)
        return True

"""In-process outbox that delivers claim notifications off the request path."""

from __future__ import annotations

import asyncio

from loguru import logger

from rewardhub_api.core.logging import claim_log_context
from rewardhub_api.observability.rewards import RewardsObservabilityStore, get_rewards_store

from .service import NotificationService, RewardClaimedEvent


_STOP = object()


class ClaimNotificationOutbox:
    """Bounded queue of claim events drained by a background task.

    ``enqueue`` never raises and never waits: a full queue drops the event
    with a warning. Delivery failures are logged and counted only.
    """

    def __init__(
        self,
        notification_service: NotificationService | None = None,
        *,
        max_size: int = 1000,
        observability: RewardsObservabilityStore | None = None,
    ) -> None:
        self._notifications = notification_service or NotificationService()
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_size)
        self._observability = observability or get_rewards_store()
        self._task: asyncio.Task | None = None
        self.is_running: bool = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def notification_service(self) -> NotificationService:
        return self._notifications

    def enqueue(self, event: RewardClaimedEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._observability.record_notification("dropped")
            with claim_log_context(event.user_id, event.reward_id, claim_id=event.claim_id):
                logger.warning("Claim notification outbox full; dropping event")
            return False
        self._observability.record_notification("enqueued")
        return True

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_loop())
        self.is_running = True
        logger.info("Claim notification outbox started", pending=self.pending)

    async def stop(self) -> None:
        if not self._task:
            return
        await self._queue.put(_STOP)
        await self._task
        self._task = None
        self.is_running = False
        logger.info("Claim notification outbox stopped", pending=self.pending)

    async def drain(self) -> int:
        """Deliver everything currently queued on the caller's task."""

        delivered = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return delivered
            try:
                if item is not _STOP and await self._deliver(item):  # type: ignore[arg-type]
                    delivered += 1
            finally:
                self._queue.task_done()

    async def _run_loop(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                await self._deliver(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    async def _deliver(self, event: RewardClaimedEvent) -> bool:
        with claim_log_context(event.user_id, event.reward_id, claim_id=event.claim_id):
            try:
                sent = await self._notifications.send_reward_claimed(event)
            except Exception as exc:  # noqa: BLE001 - delivery must never surface to claims
                self._observability.record_notification("failed")
                logger.exception("Claim notification delivery failed", error=str(exc))
                return False

        self._observability.record_notification("sent" if sent else "skipped")
        return sent


__all__ = ["ClaimNotificationOutbox"]

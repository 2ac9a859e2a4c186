from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from chatroom.errors import LockBusy
from chatroom.lock import redis_lock
from chatroom.presence import DEFAULT_INACTIVITY_TIMEOUT_MS, PresenceRegistry
from chatroom.storage import StorageGateway


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SweeperConfig:
    # Seconds between two sweep passes.
    interval_s: float = 15.0
    timeout_ms: int = DEFAULT_INACTIVITY_TIMEOUT_MS
    # Upper bound on how long one pass may hold the sweep lock.
    lock_ttl_ms: int = 30_000


class PresenceSweeper:
    """Periodic inactivity sweep as an explicitly owned asyncio task.

    `start()` schedules the loop on the running event loop; `stop()` cancels
    it and waits for it to finish. Each pass runs in a worker thread because
    the Redis client is synchronous.
    """

    def __init__(self, *, presence: PresenceRegistry, storage: StorageGateway, config: SweeperConfig | None = None) -> None:
        self._presence = presence
        self._storage = storage
        self._config = config or SweeperConfig()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> list[str]:
        """Run a single pass under the sweep lock.

        Returns the removed names; an empty list if another sweeper holds the lock.
        """

        try:
            with redis_lock(r=self._storage.redis, key=self._storage.key("sweep-lock"), ttl_ms=self._config.lock_ttl_ms):
                return self._presence.sweep(timeout_ms=self._config.timeout_ms)
        except LockBusy:
            logger.debug("another sweeper is running; skipping this pass")
            return []

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._config.interval_s)
            try:
                removed = await asyncio.to_thread(self.sweep_once)
            except Exception:
                # CancelledError is a BaseException and still ends the loop.
                logger.exception("presence sweep failed; retrying next interval")
                continue
            if removed:
                logger.info("swept %d inactive participant(s): %s", len(removed), ", ".join(removed))

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="presence-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

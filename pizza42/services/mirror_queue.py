# pizza42/services/mirror_queue.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..errors import MirrorError

logger = logging.getLogger(__name__)

AppendFn = Callable[[str, Dict[str, Any]], Awaitable[None]]


class MirrorQueue:
    """
    Bounded background queue that copies new orders to the profile store.

    `submit` never blocks and never raises: when the queue is full or not
    running the job is dropped and counted. Each job is tried once.
    """

    def __init__(self, append: AppendFn, maxsize: int = 100, workers: int = 1):
        self._append = append
        self.maxsize = maxsize
        self.workers = max(1, workers)
        self._queue: Optional[asyncio.Queue[Tuple[str, Dict[str, Any]]]] = None
        self._tasks: List[asyncio.Task] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.submitted = 0
        self.succeeded = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._loop is not None

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._tasks = [
            asyncio.create_task(self._worker(self._queue), name=f"mirror-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info("mirror queue started (workers=%d, maxsize=%d)", self.workers, self.maxsize)

    async def drain(self) -> None:
        """Wait until every queued job has been attempted."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        if not self.running:
            return
        if drain:
            await self.drain()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
        self._loop = None
        logger.info("mirror queue stopped: %s", self.stats())

    def submit(self, subject: str, record: Dict[str, Any]) -> bool:
        loop = self._loop
        if loop is None:
            self.dropped += 1
            logger.warning("mirror queue not running; dropped order %s for %s", record.get("id"), subject)
            return False

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is loop:
            return self._enqueue(subject, record)
        # called from a worker thread (sync handler); hand over to the loop
        loop.call_soon_threadsafe(self._enqueue, subject, record)
        return True

    def _enqueue(self, subject: str, record: Dict[str, Any]) -> bool:
        if self._queue is None:
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait((subject, record))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("mirror queue full; dropped order %s for %s", record.get("id"), subject)
            return False
        self.submitted += 1
        return True

    async def _worker(self, queue: asyncio.Queue) -> None:
        while True:
            subject, record = await queue.get()
            try:
                await self._append(subject, record)
            except MirrorError as e:
                self.failed += 1
                logger.warning("failed to mirror order %s for %s: %s", record.get("id"), subject, e)
            except Exception:
                self.failed += 1
                logger.exception("unexpected error mirroring order %s for %s", record.get("id"), subject)
            else:
                self.succeeded += 1
            finally:
                queue.task_done()

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            "submitted": self.submitted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "dropped": self.dropped,
        }

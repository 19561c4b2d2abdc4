"""Bounded asyncio worker pool shared by every batch."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

PoolJob = Callable[[], Awaitable[None]]


class WorkerPool:
    """Fixed number of workers draining one FIFO job queue.

    Each worker runs one job to completion before taking the next, so at
    most ``concurrency`` jobs execute at once across all batches.
    """

    def __init__(self, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError("Worker pool concurrency must be at least 1.")
        self.concurrency = concurrency
        self._queue: asyncio.Queue[PoolJob] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start the workers on the running event loop; idempotent."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._work(index), name=f"skorly-worker-{index}")
            for index in range(self.concurrency)
        ]

    def submit(self, job: PoolJob) -> None:
        """Queue one job, starting the workers on first use."""
        self.start()
        self._queue.put_nowait(job)

    async def close(self) -> None:
        """Stop the workers; queued jobs that have not started are abandoned."""
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _work(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job()
            except Exception as error:
                _LOGGER.error("worker_job_crashed", worker=index, error=str(error))
            finally:
                self._queue.task_done()

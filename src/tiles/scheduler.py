"""Bounded-concurrency tile loader with per-address deduplication.

This module provides FetchScheduler:
- A FIFO queue of FetchJob requests
- A fixed pool of ``max_concurrent`` worker tasks pulling from the queue
- One completion queue drained by a single dispatcher task, the only
  place where results are handed back to the owner (cache/camera updates
  therefore never race with each other)

Stale requests are not cancelled: every job carries the epoch it was
requested under and the owner decides whether a result is still
display-worthy.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from domain.models import FetchJob, FetchResult
from shared.errors import DecodeFailure, TileError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from domain.models import TileAddress

logger = logging.getLogger(__name__)


class FetchScheduler:
    """Queue + worker pool for tile fetches.

    Usage:
        scheduler = FetchScheduler(fetcher, max_concurrent=8, on_complete=handle)
        await scheduler.start()
        scheduler.request(TileAddress(14, 8800, 5370), epoch=3)
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        fetch: Callable[[TileAddress], Awaitable[Any]],
        *,
        max_concurrent: int,
        on_complete: Callable[[FetchResult], None] | None = None,
    ) -> None:
        if max_concurrent < 1:
            msg = f'max_concurrent must be at least 1, got {max_concurrent}'
            raise ValueError(msg)
        self._fetch = fetch
        self._max_concurrent = max_concurrent
        self._on_complete = on_complete

        self._pending: asyncio.Queue[FetchJob] = asyncio.Queue()
        self._completions: asyncio.Queue[
            tuple[FetchJob, Any, Exception | None]
        ] = asyncio.Queue()
        # queued, running, or finished but not yet dispatched
        self._jobs: dict[TileAddress, FetchJob] = {}
        self._running: set[TileAddress] = set()
        self._idle = asyncio.Event()
        self._idle.set()

        self._workers: list[asyncio.Task[None]] = []
        self._dispatcher: asyncio.Task[None] | None = None

        self.completed = 0
        self.failed = 0
        self.peak_active = 0

    # ------------------------------------------------------------------
    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_loads(self) -> int:
        """Fetches currently running (at most ``max_concurrent``)."""
        return len(self._running)

    @property
    def pending_count(self) -> int:
        return self._pending.qsize()

    @property
    def busy(self) -> bool:
        """True while any job is queued, running or awaiting dispatch."""
        return bool(self._jobs)

    @property
    def started(self) -> bool:
        return self._dispatcher is not None

    def is_busy(self, address: TileAddress) -> bool:
        return address in self._jobs

    def job_epoch(self, address: TileAddress) -> int | None:
        job = self._jobs.get(address)
        return job.epoch if job is not None else None

    # ------------------------------------------------------------------
    def request(self, address: TileAddress, epoch: int) -> bool:
        """Enqueue a fetch; returns False when one is already outstanding.

        A duplicate request attaches its (newer) epoch to the outstanding
        job instead of starting a second transfer.
        """
        job = self._jobs.get(address)
        if job is not None:
            job.attach(epoch)
            return False
        job = FetchJob(address, epoch)
        self._jobs[address] = job
        self._idle.clear()
        self._pending.put_nowait(job)
        return True

    async def wait_idle(self) -> None:
        await self._idle.wait()

    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self.started:
            return
        self._dispatcher = asyncio.create_task(self._dispatch(), name='tile-dispatch')
        self._workers = [
            asyncio.create_task(self._worker(idx), name=f'tile-worker-{idx}')
            for idx in range(self._max_concurrent)
        ]
        logger.info('FetchScheduler started with %d workers', self._max_concurrent)

    async def stop(self) -> None:
        """Cancel workers; outstanding jobs are dropped without callbacks."""
        if not self.started:
            return
        tasks = [*self._workers, self._dispatcher]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._dispatcher = None

        dropped = len(self._jobs)
        self._jobs.clear()
        self._running.clear()
        while not self._pending.empty():
            self._pending.get_nowait()
        while not self._completions.empty():
            self._completions.get_nowait()
        self._idle.set()
        logger.info(
            'FetchScheduler stopped: %d completed, %d failed, %d dropped',
            self.completed,
            self.failed,
            dropped,
        )

    async def __aenter__(self) -> FetchScheduler:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    async def _worker(self, idx: int) -> None:
        while True:
            job = await self._pending.get()
            self._running.add(job.address)
            self.peak_active = max(self.peak_active, len(self._running))
            image: Any = None
            error: Exception | None = None
            try:
                image = await self._fetch(job.address)
                if image is None:
                    error = DecodeFailure(f'No image returned for tile {job.address}')
            except TileError as e:
                error = e
                logger.warning('Tile %s failed: %s', job.address, e)
            except Exception as e:
                error = e
                logger.warning(
                    'Tile %s failed with unexpected error', job.address, exc_info=True
                )
            finally:
                # Free the slot before the result is dispatched
                self._running.discard(job.address)
            self._completions.put_nowait((job, image, error))

    async def _dispatch(self) -> None:
        while True:
            job, image, error = await self._completions.get()
            self._jobs.pop(job.address, None)
            result = FetchResult(job.address, job.epoch, image=image, error=error)
            if result.ok:
                self.completed += 1
            else:
                self.failed += 1
            if self._on_complete is not None:
                try:
                    self._on_complete(result)
                except Exception:
                    logger.exception('Completion handler failed for %s', job.address)
            if not self._jobs:
                self._idle.set()


async def fetch_all(
    scheduler: FetchScheduler,
    addresses: list[TileAddress],
    *,
    epoch: int = 0,
) -> None:
    """Request every address and wait until the scheduler drains."""
    for address in addresses:
        scheduler.request(address, epoch)
    await scheduler.wait_idle()

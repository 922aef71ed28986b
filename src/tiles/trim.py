"""Release of display entries that fell out of the needed set."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from domain.models import TileAddress

logger = logging.getLogger(__name__)


class TrimState(str, Enum):
    IDLE = 'idle'
    PENDING = 'pending'
    TRIMMED = 'trimmed'


class TrimScheduler:
    """
    Tracks the displayed set and trims it against the latest needed set.

    Immediate mode trims synchronously on every ``schedule()``. Deferred mode
    arms a timer of ``delay_s`` and, once it elapses, additionally waits for
    ``wait_settled`` (no fetch running) before trimming, so a tile is never
    released while its replacement may still be streaming. A new
    ``schedule()`` supersedes the pending trim; at most one is armed.
    """

    def __init__(
        self,
        *,
        deferred: bool,
        delay_s: float,
        wait_settled: Callable[[], Awaitable[None]] | None = None,
        on_trim: Callable[[set[TileAddress]], None] | None = None,
    ) -> None:
        self.deferred = deferred
        self.delay_s = delay_s
        self._wait_settled = wait_settled
        self._on_trim = on_trim
        self._displayed: set[TileAddress] = set()
        self._needed: set[TileAddress] = set()
        self._task: asyncio.Task[None] | None = None
        self._state = TrimState.IDLE
        self.trims = 0

    @property
    def state(self) -> TrimState:
        return self._state

    @property
    def displayed(self) -> frozenset[TileAddress]:
        return frozenset(self._displayed)

    @property
    def needed(self) -> frozenset[TileAddress]:
        return frozenset(self._needed)

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_displayed(self, addresses: Iterable[TileAddress]) -> None:
        self._displayed.update(addresses)

    def schedule(self, needed: Iterable[TileAddress]) -> None:
        """Record the newest needed set and trim now or arm a deferred trim."""
        self._needed = set(needed)
        self._state = TrimState.IDLE
        if not self.deferred:
            self.trim_now()
            return
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(
            self._deferred_trim(), name='deferred-trim'
        )
        self._state = TrimState.PENDING

    def trim_now(self) -> set[TileAddress]:
        """Release stale entries; the state stays TRIMMED until the next schedule."""
        stale = self._displayed - self._needed
        self._displayed -= stale
        if not stale:
            self._state = TrimState.IDLE
            return stale
        self._state = TrimState.TRIMMED
        self.trims += 1
        logger.debug('Trimmed %d tile(s)', len(stale))
        if self._on_trim is not None:
            self._on_trim(stale)
        return stale

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._state = TrimState.IDLE

    async def _deferred_trim(self) -> None:
        await asyncio.sleep(self.delay_s)
        if self._wait_settled is not None:
            await self._wait_settled()
        self._task = None
        self.trim_now()

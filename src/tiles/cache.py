"""In-memory tile cache with LRU eviction shared across zoom levels.

This module provides TileCache, a bounded mapping from TileAddress to a
decoded tile image. Entries are touched on every hit and evicted strictly
in least-recently-used order; a zoom change never evicts anything, so
coarse tiles from earlier zoom levels stay available as fallbacks.
"""

from __future__ import annotations

import logging
from collections import Counter, OrderedDict
from typing import TYPE_CHECKING, Any

from domain.models import CacheStats

if TYPE_CHECKING:
    from collections.abc import Iterator

    from domain.models import TileAddress

logger = logging.getLogger(__name__)


class TileCache:
    """Bounded LRU mapping ``TileAddress -> image``.

    Features:
    - O(1) get/put (``OrderedDict`` keeps the recency order)
    - Eviction one entry at a time, never blocking and never doing I/O
    - No explicit removal; entries leave only through eviction

    Evicted images are merely dropped from the mapping: a display element
    still holding a reference keeps it alive.

    Usage:
        cache = TileCache(max_tiles=256)
        cache.put(TileAddress(14, 8800, 5370), image)
        image, found = cache.get(TileAddress(14, 8800, 5370))
    """

    def __init__(self, max_tiles: int) -> None:
        if max_tiles < 1:
            msg = f'max_tiles must be at least 1, got {max_tiles}'
            raise ValueError(msg)
        self._max_tiles = max_tiles
        self._entries: OrderedDict[TileAddress, Any] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_tiles(self) -> int:
        return self._max_tiles

    def get(self, address: TileAddress) -> tuple[Any, bool]:
        """Return ``(image, True)`` on hit and mark it most recently used."""
        image = self._entries.get(address)
        if image is None:
            self._misses += 1
            return None, False
        self._entries.move_to_end(address)
        self._hits += 1
        return image, True

    def peek(self, address: TileAddress) -> Any | None:
        """Look up without touching recency."""
        return self._entries.get(address)

    def put(self, address: TileAddress, image: Any) -> list[TileAddress]:
        """Insert or replace an entry and return the addresses evicted."""
        if image is None:
            msg = 'cannot cache a missing image'
            raise ValueError(msg)
        self._entries[address] = image
        self._entries.move_to_end(address)

        evicted: list[TileAddress] = []
        while len(self._entries) > self._max_tiles:
            victim, _ = self._entries.popitem(last=False)
            evicted.append(victim)
        if evicted:
            self._evictions += len(evicted)
            logger.debug('Evicted %d tile(s), oldest %s', len(evicted), evicted[0])
        return evicted

    def addresses(self) -> list[TileAddress]:
        """Addresses from least to most recently used."""
        return list(self._entries)

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            capacity=self._max_tiles,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            tiles_by_zoom=dict(Counter(a.zoom for a in self._entries)),
        )

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TileAddress]:
        return iter(list(self._entries))

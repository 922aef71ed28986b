"""Parent-tile fallback: show a cropped ancestor while the real tile streams."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from domain.models import CropRect, TileAddress
from shared.constants import UvOrigin

if TYPE_CHECKING:
    from tiles.cache import TileCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FallbackImage:
    image: Any
    crop: CropRect
    ancestor: TileAddress
    depth: int


def child_crop(address: TileAddress, depth: int, origin: UvOrigin) -> CropRect:
    """
    Sub-rectangle of the ancestor ``depth`` levels up covering ``address``.

    The ancestor is split into a ``2**depth`` square grid; the child sits at
    ``(x mod 2**depth, y mod 2**depth)`` counted from the top-left with
    ``y`` growing downwards. For a bottom-left texture origin the ``v``
    coordinate is flipped.
    """
    denom = 1 << depth
    cx = address.x & (denom - 1)
    cy = address.y & (denom - 1)
    size = 1.0 / denom
    u = cx * size
    if origin == UvOrigin.BOTTOM_LEFT:
        v = 1.0 - (cy + 1) * size
    else:
        v = cy * size
    return CropRect(u, v, size, size)


class FallbackResolver:
    """Search the cache for the nearest cached ancestor of a tile."""

    def __init__(
        self,
        cache: TileCache,
        *,
        min_zoom: int = 0,
        origin: UvOrigin = UvOrigin.TOP_LEFT,
    ) -> None:
        self._cache = cache
        self.min_zoom = min_zoom
        self.origin = origin

    def resolve(self, address: TileAddress, max_depth: int) -> FallbackImage | None:
        """Nearest cached ancestor within ``max_depth`` levels, or ``None``.

        Probes go through ``TileCache.get`` so a hit refreshes the ancestor's
        recency.
        """
        for depth in range(1, max_depth + 1):
            if address.zoom - depth < self.min_zoom:
                break
            ancestor = address.parent(depth)
            image, found = self._cache.get(ancestor)
            if found:
                crop = child_crop(address, depth, self.origin)
                logger.debug('Fallback for %s from %s crop=%s', address, ancestor, crop)
                return FallbackImage(image, crop, ancestor, depth)
        return None

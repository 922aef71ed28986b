from __future__ import annotations

from typing import TYPE_CHECKING

from domain.models import TileAddress
from geo.projection import world_pixel_to_tile, wrap_tile_index

if TYPE_CHECKING:
    from domain.models import CameraState


def center_tile(camera: CameraState) -> tuple[int, int]:
    """Tile index under the camera center, wrapped into the world."""
    cx, cy = world_pixel_to_tile(camera.center.x, camera.center.y)
    return wrap_tile_index(cx, camera.zoom), wrap_tile_index(cy, camera.zoom)


def compute_needed(
    camera: CameraState,
    half_tiles: int,
    prefetch_ring: bool,
) -> list[TileAddress]:
    """
    Square of tiles around the camera tile, row-major and deduplicated.

    The radius is ``half_tiles`` plus one when the prefetch ring is on.
    Both axes wrap modulo ``2**zoom``, so at low zoom levels a ring wider
    than the world collapses onto the same addresses.
    """
    cx, cy = world_pixel_to_tile(camera.center.x, camera.center.y)
    r = half_tiles + (1 if prefetch_ring else 0)
    needed: dict[TileAddress, None] = {}
    for dy in range(-r, r + 1):
        for dx in range(-r, r + 1):
            needed.setdefault(TileAddress(camera.zoom, cx + dx, cy + dy))
    return list(needed)


class ViewportPlanner:
    """Needed-set computation bound to the view settings."""

    def __init__(self, half_tiles: int, *, prefetch_ring: bool = True) -> None:
        self.half_tiles = half_tiles
        self.prefetch_ring = prefetch_ring

    @property
    def radius(self) -> int:
        return self.half_tiles + (1 if self.prefetch_ring else 0)

    def compute_needed(self, camera: CameraState) -> list[TileAddress]:
        return compute_needed(camera, self.half_tiles, self.prefetch_ring)

    def center_tile(self, camera: CameraState) -> tuple[int, int]:
        return center_tile(camera)

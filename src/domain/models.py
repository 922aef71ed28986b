"""Value types shared by the projection, cache, planner and scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from PIL import Image


@dataclass(frozen=True, order=True)
class TileAddress:
    """Tile identity ``(zoom, x, y)``; ``x`` and ``y`` wrap modulo ``2**zoom``."""

    zoom: int
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.zoom < 0:
            msg = f'zoom must be non-negative, got {self.zoom}'
            raise ValueError(msg)
        n = 1 << self.zoom
        object.__setattr__(self, 'x', self.x % n)
        object.__setattr__(self, 'y', self.y % n)

    @property
    def tiles_across(self) -> int:
        return 1 << self.zoom

    def parent(self, depth: int = 1) -> TileAddress:
        """Ancestor covering this tile ``depth`` levels up."""
        if depth < 0 or depth > self.zoom:
            msg = f'depth {depth} out of range for zoom {self.zoom}'
            raise ValueError(msg)
        return TileAddress(self.zoom - depth, self.x >> depth, self.y >> depth)

    def __str__(self) -> str:
        return f'{self.zoom}/{self.x}/{self.y}'


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


@dataclass(frozen=True)
class WorldPixel:
    """Continuous position in the ``256 * 2**zoom`` pixel world."""

    x: float
    y: float

    def offset(self, dx: float, dy: float) -> WorldPixel:
        return WorldPixel(self.x + dx, self.y + dy)


@dataclass
class CameraState:
    """Where the map is looking. Mutated in place by pan/zoom.

    ``epoch`` is the generation counter: it is bumped once per zoom level
    change and stamped on every fetch request.
    """

    center: WorldPixel
    zoom: int
    epoch: int = 0


@dataclass(frozen=True)
class CropRect:
    """Normalized sub-rectangle of a tile image."""

    u: float
    v: float
    width: float
    height: float

    @classmethod
    def full(cls) -> CropRect:
        return cls(0.0, 0.0, 1.0, 1.0)

    @property
    def is_full(self) -> bool:
        return self == CropRect.full()


@dataclass
class FetchJob:
    """A queued or running fetch; ``epoch`` only ever grows."""

    address: TileAddress
    epoch: int

    def attach(self, epoch: int) -> None:
        self.epoch = max(self.epoch, epoch)


@dataclass(frozen=True)
class FetchResult:
    address: TileAddress
    epoch: int
    image: Image.Image | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None


@dataclass(frozen=True)
class AoiBounds:
    """Area of interest in geographic degrees."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


@dataclass
class CacheStats:
    """Counters reported by the in-memory tile cache."""

    size: int = 0
    capacity: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    tiles_by_zoom: dict[int, int] = field(default_factory=dict)

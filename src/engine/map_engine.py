"""Map engine: the single owner of camera, cache, epoch and needed set.

Every mutating method must run on the thread of the event loop the engine
was started on. Network fetches run in the scheduler's worker tasks and
come back through its completion queue, so the cache and the camera are
only ever touched from one place. Other threads hand work over with
``MapEngine.post()``.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from typing import TYPE_CHECKING, Any

from domain.models import AoiBounds, CameraState, CropRect, GeoPoint, WorldPixel
from engine.events import EngineEvent, Observable
from geo.projection import (
    lat_lon_to_world_pixel,
    scale_world_pixel,
    world_pixel_to_lat_lon,
    world_size,
)
from infrastructure.http.client import make_http_session
from shared.constants import TILE_SIZE
from tiles.cache import TileCache
from tiles.fallback import FallbackResolver
from tiles.fetcher import HttpTileFetcher
from tiles.planner import ViewportPlanner
from tiles.scheduler import FetchScheduler
from tiles.trim import TrimScheduler
from tiles.urls import MapboxUrlBuilder, make_url_builder

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import aiohttp

    from domain.models import FetchResult, TileAddress
    from domain.settings import EngineSettings
    from tiles.urls import UrlBuilder

logger = logging.getLogger(__name__)


class MapEngine(Observable):
    """
    Slippy-map tile streaming engine.

    Usage:
        engine = MapEngine(EngineSettings(center_lat=55.75, center_lon=37.62))
        engine.add_observer(display)
        async with engine:
            engine.pan_by(120, -40)
            engine.zoom_by(+1)
    """

    def __init__(
        self,
        settings: EngineSettings,
        fetch: Callable[[TileAddress], Awaitable[Any]] | None = None,
        *,
        url_builder: UrlBuilder | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.settings = settings
        self._clock = clock
        self._url_builder = url_builder or make_url_builder(settings)
        self._fetch = fetch
        self._session = session
        self._owns_session = False
        self._owns_fetch = False

        zoom = settings.clamp_zoom(settings.zoom)
        self._camera = CameraState(
            center=lat_lon_to_world_pixel(settings.center_lat, settings.center_lon, zoom),
            zoom=zoom,
        )
        self._needed: frozenset[TileAddress] = frozenset()
        self._cache = TileCache(settings.max_cached_tiles)
        self._planner = ViewportPlanner(
            settings.half_tiles, prefetch_ring=settings.prefetch_ring
        )
        self._fallback = FallbackResolver(
            self._cache, min_zoom=settings.min_zoom, origin=settings.uv_origin
        )
        self._scheduler = FetchScheduler(
            self._fetch_tile,
            max_concurrent=settings.max_concurrent,
            on_complete=self._on_fetch_complete,
        )
        self._trim = TrimScheduler(
            deferred=settings.deferred_trim,
            delay_s=settings.trim_delay_s,
            wait_settled=self._scheduler.wait_idle,
            on_trim=self._on_trimmed,
        )

        self._interacting = False
        self._last_interact = 0.0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._owner_thread: int | None = None
        self.stale_results = 0

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> None:
        if self._owner_thread is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._owner_thread = threading.get_ident()
        if self._fetch is None:
            if self._session is None:
                self._session = make_http_session(
                    pool_size=self.settings.max_concurrent,
                    timeout=self.settings.http_timeout_s,
                )
                self._owns_session = True
            secret = (
                self._url_builder.access_token
                if isinstance(self._url_builder, MapboxUrlBuilder)
                else ''
            )
            self._fetch = HttpTileFetcher(
                self._session,
                self.tile_url,
                timeout=self.settings.http_timeout_s,
                secret=secret,
            )
            self._owns_fetch = True
        await self._scheduler.start()
        logger.info(
            'MapEngine started at z=%d center=%s source=%r',
            self._camera.zoom,
            self.center,
            self._url_builder,
        )
        self.rebuild()

    async def stop(self) -> None:
        if self._owner_thread is None:
            return
        self._check_owner()
        await self._trim.cancel()
        await self._scheduler.stop()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False
        if self._owns_fetch:
            self._fetch = None
            self._owns_fetch = False
        self._owner_thread = None
        self._loop = None
        stats = self._cache.stats()
        logger.info(
            'MapEngine stopped: cache %d/%d, hits=%d misses=%d evictions=%d',
            stats.size,
            stats.capacity,
            stats.hits,
            stats.misses,
            stats.evictions,
        )

    async def __aenter__(self) -> MapEngine:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(*args)`` on the engine thread; safe from any thread."""
        if self._loop is None:
            msg = 'MapEngine is not running'
            raise RuntimeError(msg)
        self._loop.call_soon_threadsafe(fn, *args)

    async def wait_settled(self) -> None:
        """Wait until no fetch is queued or running."""
        await self._scheduler.wait_idle()

    # ------------------------------------------------------------------
    # Read-only state
    @property
    def zoom(self) -> int:
        return self._camera.zoom

    @property
    def epoch(self) -> int:
        return self._camera.epoch

    @property
    def center(self) -> GeoPoint:
        c = self._camera.center
        return world_pixel_to_lat_lon(c.x, c.y, self._camera.zoom)

    @property
    def center_pixel(self) -> WorldPixel:
        return self._camera.center

    @property
    def needed(self) -> frozenset[TileAddress]:
        return self._needed

    @property
    def displayed(self) -> frozenset[TileAddress]:
        return self._trim.displayed

    @property
    def cache(self) -> TileCache:
        return self._cache

    @property
    def scheduler(self) -> FetchScheduler:
        return self._scheduler

    @property
    def trim(self) -> TrimScheduler:
        return self._trim

    # ------------------------------------------------------------------
    # Camera operations
    def set_center(self, lat: float, lon: float, zoom: int | None = None) -> None:
        """Jump to a point; an out-of-range zoom is clamped, never rejected."""
        self._check_owner()
        if zoom is not None:
            self._set_zoom_level(self._clamp_zoom(zoom))
        self._camera.center = lat_lon_to_world_pixel(lat, lon, self._camera.zoom)
        self.rebuild()

    def pan_by(self, dx: float, dy: float, *, rebuild: bool = True) -> None:
        """Move the center by world pixels (``+y`` is south).

        While dragging, pass ``rebuild=False`` and rebuild once at the end.
        """
        self._check_owner()
        self.mark_interacting()
        c = self._camera.center
        self._place(c.x + dx, c.y + dy)
        if rebuild:
            self.rebuild()

    def pan_end(self) -> frozenset[TileAddress]:
        """End of a drag: rebuild once for the final position."""
        return self.rebuild()

    def zoom_by(self, delta: int, anchor: tuple[float, float] | None = None) -> bool:
        """
        Change the zoom level by ``delta`` (clamped to the configured bounds).

        ``anchor`` is the offset, in tiles, of the point that must stay under
        the cursor relative to the view center (``+y`` down). Without an
        anchor the geographic center is kept. Returns False when the level
        did not change.
        """
        self._check_owner()
        self.mark_interacting()
        old_z = self._camera.zoom
        new_z = self._clamp_zoom(old_z + delta)
        if new_z == old_z:
            return False

        c = self._camera.center
        if anchor is not None and self.settings.zoom_toward_cursor:
            lx, ly = anchor
            f = 2.0 ** (new_z - old_z)
            u_new = (c.x / TILE_SIZE + lx) * f
            v_new = (c.y / TILE_SIZE + ly) * f
            self._set_zoom_level(new_z)
            self._place((u_new - lx) * TILE_SIZE, (v_new - ly) * TILE_SIZE)
        else:
            self._camera.center = scale_world_pixel(c, old_z, new_z)
            self._set_zoom_level(new_z)
        self.rebuild()
        return True

    def wheel(self, steps: float, anchor: tuple[float, float] | None = None) -> bool:
        """Scroll-wheel zoom: one configured step per notch direction."""
        if abs(steps) < 0.01:
            return False
        step = self.settings.wheel_zoom_step
        return self.zoom_by(step if steps > 0 else -step, anchor)

    def _clamp_zoom(self, zoom: int) -> int:
        clamped = self.settings.clamp_zoom(zoom)
        if clamped != zoom:
            logger.debug('Zoom %d clamped to %d', zoom, clamped)
        return clamped

    def _place(self, x: float, y: float) -> None:
        # x wraps around the world, y stays inside it
        s = world_size(self._camera.zoom)
        self._camera.center = WorldPixel(x % s, min(max(y, 0.0), math.nextafter(s, 0.0)))

    def _set_zoom_level(self, zoom: int) -> None:
        if zoom == self._camera.zoom:
            return
        self._camera.zoom = zoom
        self._camera.epoch += 1
        logger.debug('Zoom level %d, epoch %d', zoom, self._camera.epoch)

    # ------------------------------------------------------------------
    # Interaction state
    def mark_interacting(self) -> None:
        self._interacting = True
        self._last_interact = self._clock()

    def is_interacting(self) -> bool:
        if self._interacting and self._clock() - self._last_interact > self.settings.interact_hold_s:
            self._interacting = False
        return self._interacting

    def tile_url(self, address: TileAddress) -> str:
        return self._url_builder.build(address, interacting=self.is_interacting())

    # ------------------------------------------------------------------
    # Rebuild
    def rebuild(self) -> frozenset[TileAddress]:
        """Recompute the needed set, apply cached/fallback images, queue misses."""
        self._check_owner()
        needed = self._planner.compute_needed(self._camera)
        self._needed = frozenset(needed)
        self.notify_observers(EngineEvent.NEEDED_SET_CHANGED, {'needed': self._needed})

        depth = self.settings.parent_fallback_depth
        queued = 0
        for address in needed:
            image, found = self._cache.get(address)
            if found:
                self._emit_ready(address, image, CropRect.full())
                continue
            if depth > 0:
                fallback = self._fallback.resolve(address, depth)
                if fallback is not None:
                    self._emit_ready(address, fallback.image, fallback.crop)
            if self._scheduler.request(address, self._camera.epoch):
                queued += 1

        logger.debug(
            'Rebuild z=%d epoch=%d: %d needed, %d queued, %d running',
            self._camera.zoom,
            self._camera.epoch,
            len(needed),
            queued,
            self._scheduler.active_loads,
        )
        self._trim.add_displayed(needed)
        self._trim.schedule(needed)
        return self._needed

    def aoi_bounds(
        self,
        top_left: tuple[float, float],
        bottom_right: tuple[float, float],
    ) -> AoiBounds:
        """Geographic box of a rectangle given as world-pixel offsets from the center."""
        c = self._camera.center
        p1 = world_pixel_to_lat_lon(c.x + top_left[0], c.y + top_left[1], self._camera.zoom)
        p2 = world_pixel_to_lat_lon(
            c.x + bottom_right[0], c.y + bottom_right[1], self._camera.zoom
        )
        aoi = AoiBounds(
            min_lat=min(p1.lat, p2.lat),
            max_lat=max(p1.lat, p2.lat),
            min_lon=min(p1.lon, p2.lon),
            max_lon=max(p1.lon, p2.lon),
        )
        logger.info(
            'AOI: lat[%.6f,%.6f] lon[%.6f,%.6f]',
            aoi.min_lat,
            aoi.max_lat,
            aoi.min_lon,
            aoi.max_lon,
        )
        return aoi

    # ------------------------------------------------------------------
    # Internals
    def _check_owner(self) -> None:
        if self._owner_thread is None:
            msg = 'MapEngine.start() must be awaited before use'
            raise RuntimeError(msg)
        if threading.get_ident() != self._owner_thread:
            msg = 'MapEngine state may only be changed from its event loop thread; use post()'
            raise RuntimeError(msg)

    async def _fetch_tile(self, address: TileAddress) -> Any:
        return await self._fetch(address)

    def _emit_ready(self, address: TileAddress, image: Any, crop: CropRect) -> None:
        self.notify_observers(
            EngineEvent.TILE_READY,
            {'address': address, 'image': image, 'crop': crop},
        )

    def _on_fetch_complete(self, result: FetchResult) -> None:
        if not result.ok:
            return
        live = result.epoch == self._camera.epoch and result.address in self._needed
        if live or self.settings.cache_stale_results:
            self._cache.put(result.address, result.image)
        if live:
            self._emit_ready(result.address, result.image, CropRect.full())
        else:
            self.stale_results += 1
            logger.debug(
                'Tile %s arrived for epoch %d (live %d), not displayed',
                result.address,
                result.epoch,
                self._camera.epoch,
            )

    def _on_trimmed(self, trimmed: set[TileAddress]) -> None:
        self.notify_observers(EngineEvent.TILES_TRIMMED, {'trimmed': frozenset(trimmed)})

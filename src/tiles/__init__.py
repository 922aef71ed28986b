"""Tile streaming building blocks.

This package provides:
- ViewportPlanner: needed-set computation around the camera
- TileCache: bounded in-memory LRU of decoded tiles
- FallbackResolver: cached-ancestor crops for missing tiles
- FetchScheduler: bounded-concurrency, deduplicated loader
- TrimScheduler: immediate or deferred release of off-view tiles
- HttpTileFetcher / URL builders: network side of a fetch
"""

from tiles.cache import TileCache
from tiles.fallback import FallbackImage, FallbackResolver
from tiles.fetcher import HttpTileFetcher, decode_tile
from tiles.planner import ViewportPlanner, compute_needed
from tiles.scheduler import FetchScheduler
from tiles.trim import TrimScheduler, TrimState
from tiles.urls import MapboxUrlBuilder, TemplateUrlBuilder, make_url_builder

__all__ = [
    'FallbackImage',
    'FallbackResolver',
    'FetchScheduler',
    'HttpTileFetcher',
    'MapboxUrlBuilder',
    'TemplateUrlBuilder',
    'TileCache',
    'TrimScheduler',
    'TrimState',
    'ViewportPlanner',
    'compute_needed',
    'decode_tile',
    'make_url_builder',
]

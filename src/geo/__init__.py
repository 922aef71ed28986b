"""Geo module - Web Mercator projection helpers."""

from .projection import (
    clamp_lat,
    lat_lon_to_world_pixel,
    meters_per_pixel,
    scale_world_pixel,
    tile_bounds,
    world_pixel_to_lat_lon,
    world_pixel_to_tile,
    world_size,
    wrap_lon,
)

__all__ = [
    'clamp_lat',
    'lat_lon_to_world_pixel',
    'meters_per_pixel',
    'scale_world_pixel',
    'tile_bounds',
    'world_pixel_to_lat_lon',
    'world_pixel_to_tile',
    'world_size',
    'wrap_lon',
]

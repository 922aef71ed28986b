"""Spherical Web Mercator: lat/lon ⇄ world pixels ⇄ tile indices.

Pure functions without shared state; safe to call from any thread.
World pixels live in a ``TILE_SIZE * 2**zoom`` square with the origin at
the north-west corner and ``y`` growing southwards.
"""

from __future__ import annotations

import math

from domain.models import GeoPoint, TileAddress, WorldPixel
from shared.constants import (
    ABSOLUTE_MAX_ZOOM,
    ABSOLUTE_MIN_ZOOM,
    EARTH_RADIUS_M,
    MERCATOR_LAT_BOUND,
    TILE_SIZE,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)
from shared.errors import ConfigurationError


def _check_zoom(zoom: int) -> int:
    if not (ABSOLUTE_MIN_ZOOM <= zoom <= ABSOLUTE_MAX_ZOOM):
        msg = f'zoom {zoom} outside [{ABSOLUTE_MIN_ZOOM}, {ABSOLUTE_MAX_ZOOM}]'
        raise ConfigurationError(msg)
    return int(zoom)


def clamp_lat(lat: float) -> float:
    return max(-MERCATOR_LAT_BOUND, min(MERCATOR_LAT_BOUND, lat))


def wrap_lon(lon: float) -> float:
    """Wrap a longitude into ``(-180, 180]``."""
    lon = math.fmod(lon, WORLD_LNG_SPAN_DEG)
    if lon > WORLD_LNG_HALF_SPAN_DEG:
        lon -= WORLD_LNG_SPAN_DEG
    elif lon <= -WORLD_LNG_HALF_SPAN_DEG:
        lon += WORLD_LNG_SPAN_DEG
    return lon


def normalize(lat: float, lon: float) -> GeoPoint:
    return GeoPoint(clamp_lat(lat), wrap_lon(lon))


def world_size(zoom: int) -> float:
    """Side of the pixel world at ``zoom``."""
    return float(TILE_SIZE * (1 << _check_zoom(zoom)))


def wrap_tile_index(i: int, zoom: int) -> int:
    return i % (1 << _check_zoom(zoom))


def lat_lon_to_world_pixel(lat: float, lon: float, zoom: int) -> WorldPixel:
    """Forward projection; ``lat`` is clamped and ``lon`` wrapped first."""
    p = normalize(lat, lon)
    s = world_size(zoom)
    x = (p.lon + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * s
    siny = math.sin(math.radians(p.lat))
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * s
    return WorldPixel(x, y)


def world_pixel_to_lat_lon(x: float, y: float, zoom: int) -> GeoPoint:
    """Inverse projection, re-clamped and re-wrapped against round-off drift."""
    s = world_size(zoom)
    lon = (x / s) * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG
    merc_y = 0.5 - (y / s)
    lat = 90.0 - WORLD_LNG_SPAN_DEG * math.atan(math.exp(-merc_y * 2 * math.pi)) / math.pi
    return normalize(lat, lon)


def world_pixel_to_tile(x: float, y: float) -> tuple[int, int]:
    """Tile index containing a world pixel (zoom is baked into the pixel)."""
    return math.floor(x / TILE_SIZE), math.floor(y / TILE_SIZE)


def tile_bounds(address: TileAddress) -> tuple[GeoPoint, GeoPoint]:
    """Return ``(south_west, north_east)`` corners of a tile."""
    x_min = address.x * TILE_SIZE
    y_min = address.y * TILE_SIZE
    south_west = world_pixel_to_lat_lon(x_min, y_min + TILE_SIZE, address.zoom)
    north_east = world_pixel_to_lat_lon(x_min + TILE_SIZE, y_min, address.zoom)
    return south_west, north_east


def scale_world_pixel(point: WorldPixel, from_zoom: int, to_zoom: int) -> WorldPixel:
    """Same geographic point expressed at another zoom level."""
    f = 2.0 ** (_check_zoom(to_zoom) - _check_zoom(from_zoom))
    return WorldPixel(point.x * f, point.y * f)


def meters_per_pixel(lat_deg: float, zoom: int) -> float:
    """Ground resolution of one world pixel at a latitude."""
    lat_rad = math.radians(clamp_lat(lat_deg))
    return (math.cos(lat_rad) * 2 * math.pi * EARTH_RADIUS_M) / world_size(zoom)

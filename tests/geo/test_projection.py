"""Tests for Web Mercator projection helpers."""

import math

import pytest

from domain.models import TileAddress, WorldPixel
from geo.projection import (
    clamp_lat,
    lat_lon_to_world_pixel,
    meters_per_pixel,
    scale_world_pixel,
    tile_bounds,
    world_pixel_to_lat_lon,
    world_pixel_to_tile,
    world_size,
    wrap_lon,
    wrap_tile_index,
)
from shared.constants import MERCATOR_LAT_BOUND
from shared.errors import ConfigurationError


class TestWorldPixel:
    """Forward and inverse projection."""

    def test_origin_maps_to_world_center(self):
        p = lat_lon_to_world_pixel(0.0, 0.0, 0)
        assert p.x == pytest.approx(128.0)
        assert p.y == pytest.approx(128.0)

    def test_zoom_one_quadrant(self):
        """A point in the north-west quadrant falls in tile (0, 0) at z=1."""
        p = lat_lon_to_world_pixel(45.0, -90.0, 1)
        assert world_pixel_to_tile(p.x, p.y) == (0, 0)

    @pytest.mark.parametrize(
        ('lat', 'lon', 'zoom'),
        [(55.7558, 37.6173, 14), (-33.8688, 151.2093, 10), (0.0, 0.0, 3), (84.0, -179.5, 19)],
    )
    def test_roundtrip(self, lat, lon, zoom):
        p = lat_lon_to_world_pixel(lat, lon, zoom)
        g = world_pixel_to_lat_lon(p.x, p.y, zoom)
        assert g.lat == pytest.approx(lat, abs=1e-9)
        assert g.lon == pytest.approx(lon, abs=1e-9)

    def test_latitude_clamped(self):
        """Poles are clamped to the Mercator limit, never infinite."""
        top = lat_lon_to_world_pixel(90.0, 0.0, 2)
        assert math.isfinite(top.y)
        assert top.y == pytest.approx(0.0, abs=1e-6)
        bottom = lat_lon_to_world_pixel(-90.0, 0.0, 2)
        assert bottom.y == pytest.approx(world_size(2), abs=1e-6)

    def test_longitude_wrapped(self):
        a = lat_lon_to_world_pixel(10.0, 190.0, 4)
        b = lat_lon_to_world_pixel(10.0, -170.0, 4)
        assert a.x == pytest.approx(b.x)

    def test_inverse_clamps_outside_world(self):
        g = world_pixel_to_lat_lon(0.0, -1000.0, 3)
        assert g.lat == pytest.approx(MERCATOR_LAT_BOUND)

    def test_invalid_zoom(self):
        with pytest.raises(ConfigurationError):
            lat_lon_to_world_pixel(0.0, 0.0, 24)
        with pytest.raises(ConfigurationError):
            world_size(-1)


class TestHelpers:
    def test_wrap_lon(self):
        assert wrap_lon(180.0) == 180.0
        assert wrap_lon(-180.0) == 180.0
        assert wrap_lon(540.0) == 180.0
        assert wrap_lon(-190.0) == pytest.approx(170.0)

    def test_clamp_lat(self):
        assert clamp_lat(89.0) == MERCATOR_LAT_BOUND
        assert clamp_lat(-89.0) == -MERCATOR_LAT_BOUND
        assert clamp_lat(12.5) == 12.5

    def test_world_pixel_to_tile_floors_negative(self):
        assert world_pixel_to_tile(-1.0, 255.9) == (-1, 0)

    def test_wrap_tile_index(self):
        assert wrap_tile_index(-1, 3) == 7
        assert wrap_tile_index(8, 3) == 0
        assert wrap_tile_index(5, 3) == 5
        with pytest.raises(ConfigurationError):
            wrap_tile_index(0, 40)

    def test_scale_world_pixel(self):
        assert scale_world_pixel(WorldPixel(100.0, 50.0), 3, 5) == WorldPixel(400.0, 200.0)
        assert scale_world_pixel(WorldPixel(100.0, 50.0), 5, 4) == WorldPixel(50.0, 25.0)

    def test_tile_bounds_zoom_zero(self):
        sw, ne = tile_bounds(TileAddress(0, 0, 0))
        assert sw.lon == pytest.approx(-180.0) or sw.lon == pytest.approx(180.0)
        assert ne.lon == pytest.approx(180.0)
        assert sw.lat == pytest.approx(-MERCATOR_LAT_BOUND)
        assert ne.lat == pytest.approx(MERCATOR_LAT_BOUND)

    def test_tile_bounds_contains_point(self):
        p = lat_lon_to_world_pixel(55.75, 37.62, 12)
        tx, ty = world_pixel_to_tile(p.x, p.y)
        sw, ne = tile_bounds(TileAddress(12, tx, ty))
        assert sw.lat <= 55.75 <= ne.lat
        assert sw.lon <= 37.62 <= ne.lon

    def test_meters_per_pixel_equator(self):
        assert meters_per_pixel(0.0, 0) == pytest.approx(156543.03, rel=1e-4)
        assert meters_per_pixel(60.0, 0) == pytest.approx(156543.03 / 2, rel=1e-4)

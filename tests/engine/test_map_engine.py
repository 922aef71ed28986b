"""Tests for the MapEngine controller."""

import asyncio

import pytest

from domain.models import TileAddress
from domain.settings import EngineSettings
from engine.events import EngineEvent, EventData, TileDisplay
from engine.map_engine import MapEngine
from geo.projection import world_size
from shared.errors import NetworkFailure


class RecordingDisplay(TileDisplay):
    def __init__(self):
        self.ready = []
        self.needed = []
        self.trimmed = []

    def on_tile_ready(self, address, image, crop):
        self.ready.append((address, image, crop))

    def needed_set_changed(self, needed):
        self.needed.append(needed)

    def tiles_trimmed(self, trimmed):
        self.trimmed.append(trimmed)

    def full_ready(self):
        return [a for a, _, crop in self.ready if crop.is_full]


class GatedFetch:
    def __init__(self, *, open_gate: bool = False):
        self.gate = asyncio.Event()
        if open_gate:
            self.gate.set()
        self.calls = []

    async def __call__(self, address):
        self.calls.append(address)
        await self.gate.wait()
        return f'img-{address}'


def _settings(**overrides):
    values = {
        'center_lat': 55.75,
        'center_lon': 37.62,
        'zoom': 10,
        'half_tiles': 1,
        'prefetch_ring': False,
        'max_concurrent': 4,
        'deferred_trim': False,
    }
    values.update(overrides)
    return EngineSettings(**values)


async def _settle(engine: MapEngine) -> None:
    await asyncio.wait_for(engine.wait_settled(), timeout=5)


class TestStreaming:
    @pytest.mark.asyncio
    async def test_start_streams_needed_set(self):
        fetch = GatedFetch(open_gate=True)
        display = RecordingDisplay()
        engine = MapEngine(_settings(), fetch)
        engine.add_observer(display)
        async with engine:
            await _settle(engine)
            assert len(engine.needed) == 9
            assert set(display.full_ready()) == set(engine.needed)
            assert all(a in engine.cache for a in engine.needed)
            assert display.needed[-1] == engine.needed

    @pytest.mark.asyncio
    async def test_cache_hit_on_rebuild_without_fetch(self):
        fetch = GatedFetch(open_gate=True)
        display = RecordingDisplay()
        async with MapEngine(_settings(), fetch) as engine:
            await _settle(engine)
            engine.add_observer(display)
            calls_before = len(fetch.calls)
            engine.rebuild()
            assert len(display.full_ready()) == 9
            assert len(fetch.calls) == calls_before
            assert not engine.scheduler.busy

    @pytest.mark.asyncio
    async def test_concurrency_cap(self):
        fetch = GatedFetch()
        async with MapEngine(_settings(half_tiles=2, max_concurrent=3), fetch) as engine:
            for _ in range(5):
                await asyncio.sleep(0)
            assert engine.scheduler.active_loads == 3
            assert len(fetch.calls) == 3
            fetch.gate.set()
            await _settle(engine)
            assert engine.scheduler.peak_active == 3


class TestEpochs:
    @pytest.mark.asyncio
    async def test_stale_result_cached_but_not_displayed(self):
        fetch = GatedFetch()
        display = RecordingDisplay()
        engine = MapEngine(_settings(), fetch)
        engine.add_observer(display)
        async with engine:
            old_needed = engine.needed
            assert engine.epoch == 0
            engine.zoom_by(+1)
            assert engine.epoch == 1
            fetch.gate.set()
            await _settle(engine)

            assert all(a in engine.cache for a in old_needed)
            assert {a.zoom for a in display.full_ready()} == {11}
            assert engine.stale_results == len(old_needed)

    @pytest.mark.asyncio
    async def test_stale_result_dropped_when_policy_off(self):
        fetch = GatedFetch()
        async with MapEngine(_settings(cache_stale_results=False), fetch) as engine:
            old_needed = engine.needed
            engine.zoom_by(+1)
            fetch.gate.set()
            await _settle(engine)
            assert not any(a in engine.cache for a in old_needed)

    @pytest.mark.asyncio
    async def test_result_no_longer_needed_after_pan(self):
        fetch = GatedFetch()
        display = RecordingDisplay()
        engine = MapEngine(_settings(), fetch)
        engine.add_observer(display)
        async with engine:
            old_needed = engine.needed
            engine.pan_by(256 * 20, 0)
            assert engine.epoch == 0
            fetch.gate.set()
            await _settle(engine)
            assert all(a in engine.cache for a in old_needed)
            assert not set(display.full_ready()) & old_needed

    @pytest.mark.asyncio
    async def test_epoch_changes_once_per_level_change(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(max_zoom=12), fetch) as engine:
            assert engine.zoom_by(+1)
            assert engine.epoch == 1
            engine.pan_by(100, 50)
            engine.set_center(10.0, 10.0)
            assert engine.epoch == 1
            engine.set_center(10.0, 10.0, zoom=11)
            assert engine.epoch == 1
            assert engine.zoom_by(+5)
            assert engine.zoom == 12
            assert engine.epoch == 2
            assert not engine.zoom_by(+1)
            assert engine.epoch == 2
            engine.set_center(0.0, 0.0, zoom=0)
            assert engine.zoom == engine.settings.min_zoom
            assert engine.epoch == 3


class TestFallback:
    @pytest.mark.asyncio
    async def test_parent_crop_shown_while_child_streams(self):
        async def fetch(address):
            if address.zoom == 11:
                msg = 'HTTP 503'
                raise NetworkFailure(msg, status=503)
            return f'img-{address}'

        display = RecordingDisplay()
        engine = MapEngine(_settings(), fetch)
        async with engine:
            await _settle(engine)
            engine.add_observer(display)
            engine.zoom_by(+1)
            await _settle(engine)

        crops = [(a, img, crop) for a, img, crop in display.ready]
        assert len(crops) == 9
        for address, image, crop in crops:
            assert address.zoom == 11
            assert image == f'img-{address.parent()}'
            assert crop.width == 0.5
            assert not crop.is_full
        assert engine.scheduler.failed == 9

    @pytest.mark.asyncio
    async def test_fallback_disabled(self):
        async def fetch(address):
            if address.zoom == 11:
                msg = 'HTTP 503'
                raise NetworkFailure(msg, status=503)
            return 'img'

        display = RecordingDisplay()
        async with MapEngine(_settings(parent_fallback_depth=0), fetch) as engine:
            await _settle(engine)
            engine.add_observer(display)
            engine.zoom_by(+1)
            await _settle(engine)
        assert display.ready == []


class TestCamera:
    @pytest.mark.asyncio
    async def test_zoom_toward_cursor_keeps_anchor(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            before = engine.center_pixel
            lx, ly = 1.5, -0.75
            engine.zoom_by(+1, anchor=(lx, ly))
            after = engine.center_pixel
            assert after.x + lx * 256 == pytest.approx((before.x + lx * 256) * 2)
            assert after.y + ly * 256 == pytest.approx((before.y + ly * 256) * 2)

    @pytest.mark.asyncio
    async def test_zoom_without_anchor_keeps_geo_center(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(zoom_toward_cursor=False), fetch) as engine:
            center = engine.center
            engine.zoom_by(-2, anchor=(3.0, 3.0))
            assert engine.center.lat == pytest.approx(center.lat, abs=1e-9)
            assert engine.center.lon == pytest.approx(center.lon, abs=1e-9)

    @pytest.mark.asyncio
    async def test_pan_wraps_horizontally(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            x0 = engine.center_pixel.x
            engine.pan_by(world_size(engine.zoom), 0)
            assert engine.center_pixel.x == pytest.approx(x0)

    @pytest.mark.asyncio
    async def test_pan_without_rebuild(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            needed = engine.needed
            engine.pan_by(256 * 5, 0, rebuild=False)
            assert engine.needed == needed
            engine.rebuild()
            assert engine.needed != needed

    @pytest.mark.asyncio
    async def test_aoi_bounds(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            aoi = engine.aoi_bounds((-300.0, -200.0), (300.0, 200.0))
            assert aoi.min_lat < 55.75 < aoi.max_lat
            assert aoi.min_lon < 37.62 < aoi.max_lon


class TestTrim:
    @pytest.mark.asyncio
    async def test_immediate_trim_reports_offscreen_tiles(self):
        fetch = GatedFetch(open_gate=True)
        display = RecordingDisplay()
        engine = MapEngine(_settings(), fetch)
        engine.add_observer(display)
        async with engine:
            old_needed = engine.needed
            engine.pan_by(256 * 20, 0)
            assert display.trimmed == [old_needed]
            assert engine.displayed == engine.needed

    @pytest.mark.asyncio
    async def test_deferred_trim_waits_for_loads(self):
        fetch = GatedFetch()
        display = RecordingDisplay()
        engine = MapEngine(_settings(deferred_trim=True, trim_delay_s=0.01), fetch)
        engine.add_observer(display)
        async with engine:
            engine.pan_by(256 * 20, 0)
            await asyncio.sleep(0.1)
            assert display.trimmed == []
            fetch.gate.set()
            await _settle(engine)
            await asyncio.sleep(0.05)
            assert len(display.trimmed) == 1
            assert engine.displayed == engine.needed


class TestThreadAffinity:
    @pytest.mark.asyncio
    async def test_mutation_from_other_thread_rejected(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            with pytest.raises(RuntimeError):
                await asyncio.to_thread(engine.pan_by, 10.0, 0.0)
            with pytest.raises(RuntimeError):
                await asyncio.to_thread(engine.zoom_by, 1)

    @pytest.mark.asyncio
    async def test_post_marshals_to_engine_thread(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            x0 = engine.center_pixel.x
            await asyncio.to_thread(engine.post, engine.pan_by, 256.0, 0.0)
            await asyncio.sleep(0.01)
            assert engine.center_pixel.x == pytest.approx(x0 + 256.0)

    def test_use_before_start_rejected(self):
        engine = MapEngine(_settings(), GatedFetch())
        with pytest.raises(RuntimeError):
            engine.rebuild()
        with pytest.raises(RuntimeError):
            engine.post(engine.rebuild)


class TestInteraction:
    def test_mapbox_tile_size_follows_interaction(self):
        now = [100.0]
        settings = _settings(
            use_mapbox=True, mapbox_access_token='pk.test', interact_hold_s=0.25
        )
        engine = MapEngine(settings, GatedFetch(), clock=lambda: now[0])
        addr = TileAddress(10, 1, 1)
        assert '/tiles/512/' in engine.tile_url(addr)
        engine.mark_interacting()
        assert engine.is_interacting()
        assert '/tiles/256/' in engine.tile_url(addr)
        now[0] += 1.0
        assert not engine.is_interacting()
        assert '/tiles/512/' in engine.tile_url(addr)


class TestObservers:
    def test_observer_error_isolated(self):
        class Broken(TileDisplay):
            def needed_set_changed(self, needed):
                msg = 'display bug'
                raise RuntimeError(msg)

        good = RecordingDisplay()
        engine = MapEngine(_settings(), GatedFetch())
        engine.add_observer(Broken())
        engine.add_observer(good)
        engine.notify_observers(EngineEvent.NEEDED_SET_CHANGED, {'needed': frozenset()})
        assert good.needed == [frozenset()]

    def test_event_envelope(self):
        data = EventData(event=EngineEvent.TILES_TRIMMED, data={'trimmed': frozenset()})
        assert data.event is EngineEvent.TILES_TRIMMED
        assert data.timestamp > 0


class TestWheel:
    @pytest.mark.asyncio
    async def test_wheel_steps_one_level(self):
        fetch = GatedFetch(open_gate=True)
        async with MapEngine(_settings(), fetch) as engine:
            assert engine.wheel(+3.0)
            assert engine.zoom == 11
            assert engine.wheel(-0.5)
            assert engine.zoom == 10
            assert not engine.wheel(0.0)
            assert engine.epoch == 2

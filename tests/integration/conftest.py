"""Shared fixtures for integration tests.

These tests stream real tiles from Mapbox. They are skipped unless a token
is available in MAPBOX_ACCESS_TOKEN or in ``.secrets.env`` at the project root.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from domain.settings import EngineSettings


def _load_api_key() -> str | None:
    """Try to load Mapbox token from environment or .secrets.env."""
    key = os.environ.get('MAPBOX_ACCESS_TOKEN')
    if key:
        return key

    secrets_path = Path(__file__).resolve().parents[2] / '.secrets.env'
    if secrets_path.exists():
        for line in secrets_path.read_text().splitlines():
            line = line.strip()
            if line.startswith('#') or '=' not in line:
                continue
            k, v = line.split('=', 1)
            v = v.strip().strip('"').strip("'")
            if k.strip() == 'MAPBOX_ACCESS_TOKEN' and v:
                return v
    return None


@pytest.fixture(scope='session')
def api_key() -> str:
    """Load Mapbox token; skip the test if unavailable."""
    key = _load_api_key()
    if not key:
        pytest.skip('Mapbox token not found (set MAPBOX_ACCESS_TOKEN or .secrets.env)')
    return key


@pytest.fixture()
def make_settings(api_key):
    """Factory for Mapbox-backed settings around Kostroma."""

    def _factory(**overrides) -> EngineSettings:
        defaults = dict(
            center_lat=57.767,
            center_lon=40.927,
            zoom=12,
            half_tiles=1,
            prefetch_ring=False,
            use_mapbox=True,
            mapbox_style_id='streets',
            mapbox_access_token=api_key,
            deferred_trim=False,
        )
        defaults.update(overrides)
        return EngineSettings(**defaults)

    return _factory

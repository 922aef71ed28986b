"""Mapping layer between flat EngineSettings fields and sectioned TOML format.

EngineSettings remains a flat Pydantic model. This module provides two functions:
- flat_to_sectioned(): flat dict → sectioned dict (for TOML save)
- sectioned_to_flat(): sectioned dict → flat dict (for TOML load)
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# {section_name: {flat_field_name: short_name_in_toml}}
SECTION_MAP: dict[str, dict[str, str]] = {
    'view': {
        'min_zoom': 'min_zoom',
        'max_zoom': 'max_zoom',
        'zoom': 'zoom',
        'center_lat': 'center_lat',
        'center_lon': 'center_lon',
        'half_tiles': 'half_tiles',
        'prefetch_ring': 'prefetch_ring',
        'zoom_toward_cursor': 'zoom_toward_cursor',
        'wheel_zoom_step': 'wheel_zoom_step',
    },
    'loader': {
        'max_concurrent': 'max_concurrent',
        'http_timeout_s': 'timeout_s',
        'speed_while_interacting': 'speed_while_interacting',
        'interact_hold_s': 'interact_hold_s',
    },
    'cache': {
        'max_cached_tiles': 'max_tiles',
        'parent_fallback_depth': 'parent_fallback_depth',
        'cache_stale_results': 'keep_stale_results',
    },
    'trim': {
        'deferred_trim': 'deferred',
        'trim_delay_s': 'delay_s',
    },
    'source': {
        'use_mapbox': 'use_mapbox',
        'url_template': 'url_template',
        'mapbox_style_id': 'style_id',
        'mapbox_access_token': 'access_token',
        'display_tile_px': 'display_tile_px',
        'use_retina': 'use_retina',
        'uv_origin': 'uv_origin',
    },
}

# flat field -> (section, key in TOML)
_FIELD_LOCATION: dict[str, tuple[str, str]] = {
    flat: (section, short)
    for section, fields in SECTION_MAP.items()
    for flat, short in fields.items()
}

# section -> {key in TOML: flat field}
_SECTION_KEYS: dict[str, dict[str, str]] = {
    section: {short: flat for flat, short in fields.items()}
    for section, fields in SECTION_MAP.items()
}


def flat_to_sectioned(flat: dict) -> dict:
    """Group flat EngineSettings fields into TOML sections.

    Keys outside ``SECTION_MAP`` stay at the top level, which
    ``sectioned_to_flat`` reads back unchanged.
    """
    result: dict = {}
    for key, value in flat.items():
        location = _FIELD_LOCATION.get(key)
        if location is None:
            result[key] = value
            continue
        section, short_name = location
        result.setdefault(section, {})[short_name] = value
    return result


def sectioned_to_flat(data: dict) -> dict:
    """Flatten a sectioned (or already flat) TOML dict for validation.

    Tables that are not engine sections are skipped with a warning.
    """
    flat: dict = {}
    for key, value in data.items():
        if not isinstance(value, dict):
            flat[key] = value
            continue
        keys = _SECTION_KEYS.get(key)
        if keys is None:
            logger.warning('Ignoring unknown profile section [%s]', key)
            continue
        for short_name, field_value in value.items():
            flat[keys.get(short_name, short_name)] = field_value
    return flat

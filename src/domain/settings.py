import logging

from pydantic import BaseModel, field_validator, model_validator

from shared.constants import (
    ABSOLUTE_MAX_ZOOM,
    ABSOLUTE_MIN_ZOOM,
    DEFAULT_CENTER_LAT,
    DEFAULT_CENTER_LON,
    DEFAULT_DISPLAY_TILE_PX,
    DEFAULT_HALF_TILES,
    DEFAULT_INTERACT_HOLD_S,
    DEFAULT_MAPBOX_STYLE_ID,
    DEFAULT_MAX_CACHED_TILES,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_MAX_ZOOM,
    DEFAULT_MIN_ZOOM,
    DEFAULT_PARENT_FALLBACK_DEPTH,
    DEFAULT_TRIM_DELAY_S,
    DEFAULT_URL_TEMPLATE,
    DEFAULT_WHEEL_ZOOM_STEP,
    DEFAULT_ZOOM,
    HTTP_TIMEOUT_DEFAULT,
    SERVER_TILE_SIZES,
    UvOrigin,
)

logger = logging.getLogger(__name__)


class EngineSettings(BaseModel):
    """Every tunable input of the tile engine, gathered in one model."""

    model_config = {
        'extra': 'ignore',  # tolerate unknown keys in older profiles
    }

    # --- View
    min_zoom: int = DEFAULT_MIN_ZOOM
    max_zoom: int = DEFAULT_MAX_ZOOM
    # Initial zoom; clamped into [min_zoom, max_zoom]
    zoom: int = DEFAULT_ZOOM
    center_lat: float = DEFAULT_CENTER_LAT
    center_lon: float = DEFAULT_CENTER_LON
    # Viewport half-extent in tiles around the center tile
    half_tiles: int = DEFAULT_HALF_TILES
    # Request one extra ring around the view
    prefetch_ring: bool = True
    zoom_toward_cursor: bool = True
    wheel_zoom_step: int = DEFAULT_WHEEL_ZOOM_STEP

    # --- Loader
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    http_timeout_s: float = HTTP_TIMEOUT_DEFAULT
    # Prefer smaller server tiles while panning/zooming
    speed_while_interacting: bool = True
    interact_hold_s: float = DEFAULT_INTERACT_HOLD_S

    # --- Cache
    max_cached_tiles: int = DEFAULT_MAX_CACHED_TILES
    parent_fallback_depth: int = DEFAULT_PARENT_FALLBACK_DEPTH
    # Keep results of fetches that finished after their viewport went stale
    cache_stale_results: bool = True

    # --- Trim
    deferred_trim: bool = True
    trim_delay_s: float = DEFAULT_TRIM_DELAY_S

    # --- Source
    use_mapbox: bool = False
    url_template: str = DEFAULT_URL_TEMPLATE
    mapbox_style_id: str = DEFAULT_MAPBOX_STYLE_ID
    mapbox_access_token: str = ''
    display_tile_px: int = DEFAULT_DISPLAY_TILE_PX
    use_retina: bool = False
    uv_origin: UvOrigin = UvOrigin.TOP_LEFT

    @field_validator('min_zoom', 'max_zoom')
    @classmethod
    def validate_zoom_bound(cls, v: int) -> int:
        v = int(v)
        if not (ABSOLUTE_MIN_ZOOM <= v <= ABSOLUTE_MAX_ZOOM):
            msg = f'zoom bound must be in [{ABSOLUTE_MIN_ZOOM}, {ABSOLUTE_MAX_ZOOM}]'
            raise ValueError(msg)
        return v

    @field_validator('display_tile_px')
    @classmethod
    def validate_tile_px(cls, v: int) -> int:
        v = int(v)
        if v not in SERVER_TILE_SIZES:
            msg = f'display_tile_px must be one of {SERVER_TILE_SIZES}'
            raise ValueError(msg)
        return v

    @field_validator('max_concurrent', 'max_cached_tiles', 'wheel_zoom_step')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        v = int(v)
        if v < 1:
            msg = 'value must be at least 1'
            raise ValueError(msg)
        return v

    @field_validator('half_tiles', 'parent_fallback_depth')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        v = int(v)
        if v < 0:
            msg = 'value must not be negative'
            raise ValueError(msg)
        return v

    @field_validator('trim_delay_s', 'interact_hold_s', 'http_timeout_s')
    @classmethod
    def validate_seconds(cls, v: float) -> float:
        v = float(v)
        if v < 0.0:
            msg = 'duration must not be negative'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def check_zoom_range(self) -> 'EngineSettings':
        if self.min_zoom > self.max_zoom:
            msg = f'min_zoom ({self.min_zoom}) exceeds max_zoom ({self.max_zoom})'
            raise ValueError(msg)
        clamped = min(max(self.zoom, self.min_zoom), self.max_zoom)
        if clamped != self.zoom:
            logger.warning(
                'Initial zoom %d outside [%d, %d], clamped to %d',
                self.zoom,
                self.min_zoom,
                self.max_zoom,
                clamped,
            )
            self.zoom = clamped
        return self

    def clamp_zoom(self, zoom: int) -> int:
        return min(max(int(zoom), self.min_zoom), self.max_zoom)

from enum import Enum

# Base URL of the Mapbox Styles API (raster tiles endpoint)
MAPBOX_STYLES_BASE = 'https://api.mapbox.com/styles/v1'

# Default generic XYZ template
DEFAULT_URL_TEMPLATE = 'https://tile.openstreetmap.org/{z}/{x}/{y}.png'
DEFAULT_MAPBOX_STYLE_ID = 'mapbox/satellite-streets-v12'

# Web Mercator "world" tile side (px); slippy math is always done in 256px tiles
TILE_SIZE = 256
# Larger server-side tile size offered by Mapbox
TILE_SIZE_512 = 512
SERVER_TILE_SIZES = (TILE_SIZE, TILE_SIZE_512)

# HiDPI suffix for Mapbox tiles
RETINA_SUFFIX = '@2x'

# --- Web Mercator
# Latitude limit of the square Mercator world
MERCATOR_LAT_BOUND = 85.05112878
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0
EARTH_RADIUS_M = 6378137.0
# 256 * 2**23 keeps a usable float64 mantissa for sub-pixel precision
ABSOLUTE_MIN_ZOOM = 0
ABSOLUTE_MAX_ZOOM = 23

# --- Engine defaults
DEFAULT_MIN_ZOOM = 2
DEFAULT_MAX_ZOOM = 19
DEFAULT_ZOOM = 14
DEFAULT_CENTER_LAT = 0.0
DEFAULT_CENTER_LON = 0.0
DEFAULT_HALF_TILES = 2
DEFAULT_MAX_CONCURRENT = 8
DEFAULT_MAX_CACHED_TILES = 256
# 0 = off, 1 = parent, 2 = grandparent
DEFAULT_PARENT_FALLBACK_DEPTH = 2
DEFAULT_TRIM_DELAY_S = 0.35
DEFAULT_INTERACT_HOLD_S = 0.25
DEFAULT_DISPLAY_TILE_PX = 512
DEFAULT_WHEEL_ZOOM_STEP = 1

# --- HTTP
HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_CONNECT_TIMEOUT = 10.0
HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
# Visible characters of an access token when it is masked in logs
API_KEY_VISIBLE_PREFIX_LEN = 4

# --- Profiles
PROFILES_DIR = 'configs/profiles'

# --- Logging
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_NAME = 'slippy_engine.log'

# --- Engine events
ENGINE_EVENT_TILE_READY = 'TILE_READY'
ENGINE_EVENT_NEEDED_SET_CHANGED = 'NEEDED_SET_CHANGED'
ENGINE_EVENT_TILES_TRIMMED = 'TILES_TRIMMED'


class UvOrigin(str, Enum):
    """Where the display layer puts the (0, 0) texture coordinate."""

    TOP_LEFT = 'top_left'
    BOTTOM_LEFT = 'bottom_left'


# Human readable names for the well known Mapbox raster styles
MAPBOX_STYLES: dict[str, str] = {
    'satellite': 'mapbox/satellite-v9',
    'hybrid': 'mapbox/satellite-streets-v12',
    'streets': 'mapbox/streets-v12',
    'outdoors': 'mapbox/outdoors-v12',
}


def resolve_style_id(name_or_id: str) -> str:
    """Return a full style id for a short alias; full ids pass through."""
    return MAPBOX_STYLES.get(name_or_id.lower(), name_or_id)

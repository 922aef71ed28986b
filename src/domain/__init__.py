"""Domain layer - value types, settings and profiles."""
from domain.models import (
    AoiBounds,
    CameraState,
    CropRect,
    FetchJob,
    FetchResult,
    GeoPoint,
    TileAddress,
    WorldPixel,
)
from domain.profiles import (
    delete_profile,
    ensure_profiles_dir,
    list_profiles,
    load_profile,
    save_profile,
)
from domain.settings import EngineSettings

__all__ = [
    'AoiBounds',
    'CameraState',
    'CropRect',
    'EngineSettings',
    'FetchJob',
    'FetchResult',
    'GeoPoint',
    'TileAddress',
    'WorldPixel',
    'delete_profile',
    'ensure_profiles_dir',
    'list_profiles',
    'load_profile',
    'save_profile',
]

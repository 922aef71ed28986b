import logging
import os
from pathlib import Path

import tomlkit
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError

from domain.settings import EngineSettings
from domain.toml_sections import flat_to_sectioned, sectioned_to_flat
from shared.constants import PROFILES_DIR
from shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

_NOT_SAVED = {'mapbox_access_token'}


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) If <project_root>/configs/profiles exists, use it (run-from-repo setups).
    2) Otherwise fall back to $SLIPPY_ENGINE_HOME/configs/profiles, or
       ~/.slippy_engine/configs/profiles when the variable is not set.
    """
    project_root = Path(__file__).resolve().parent.parent.parent
    local_profiles = project_root / PROFILES_DIR
    if local_profiles.exists():
        return local_profiles

    home = os.getenv('SLIPPY_ENGINE_HOME')
    base = Path(home) if home else Path.home() / '.slippy_engine'
    return base / PROFILES_DIR


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Profile names without extension."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name: str) -> Path:
    return ensure_profiles_dir() / f'{name}.toml'


def parse_settings(text: str) -> EngineSettings:
    """Parse TOML text (flat or sectioned) into validated settings."""
    try:
        data = tomlkit.parse(text).unwrap()
    except TOMLKitError as e:
        msg = f'Malformed profile TOML: {e}'
        raise ConfigurationError(msg) from e
    try:
        return EngineSettings.model_validate(sectioned_to_flat(data))
    except ValidationError as e:
        msg = f'Invalid engine settings: {e}'
        raise ConfigurationError(msg) from e


def dump_settings(settings: EngineSettings) -> str:
    """Sectioned TOML text; the access token is never written, it comes from the environment."""
    data = settings.model_dump(mode='json', exclude=_NOT_SAVED)
    return tomlkit.dumps(flat_to_sectioned(data))


def load_profile(name_or_path: str) -> EngineSettings:
    """
    Load and validate a TOML profile.

    Accepts a profile name (looked up in the profiles directory) or a path
    to a ``.toml`` file.
    """
    p = Path(name_or_path)
    path = (
        p if p.suffix.lower() == '.toml' and p.exists() else profile_path(name_or_path)
    )
    if not path.exists():
        msg = f'Profile not found: {path}'
        raise FileNotFoundError(msg)
    settings = parse_settings(path.read_text(encoding='utf-8'))
    logger.info('Profile loaded from %s', path)
    return settings


def save_profile(name: str, settings: EngineSettings) -> Path:
    """Write the profile as sectioned TOML (no atomic replace, no backups)."""
    path = profile_path(name)
    path.write_text(dump_settings(settings), encoding='utf-8')
    logger.info('Profile saved to %s', path)
    return path


def delete_profile(name: str) -> None:
    path = profile_path(name)
    if path.exists():
        path.unlink()

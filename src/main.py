"""Headless entry point: stream the tiles around a point and report."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from domain.models import TileAddress
from domain.profiles import load_profile, save_profile
from domain.settings import EngineSettings
from engine.events import TileDisplay
from engine.map_engine import MapEngine
from infrastructure.http.client import validate_tile_source
from shared.constants import LOG_FILE_NAME, LOG_FORMAT
from shared.diagnostics import log_engine_status, log_memory_usage, log_thread_status
from shared.errors import ConfigurationError, TileError
from tiles.urls import MapboxUrlBuilder, make_url_builder, mask_token

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = 'MAPBOX_ACCESS_TOKEN'


def setup_logging(level: int = logging.INFO) -> Path:
    """Configure console + file logging; returns the log file path."""
    log_dir = Path(os.getenv('SLIPPY_ENGINE_HOME') or Path.home() / '.slippy_engine') / 'log'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding='utf-8'),
        ],
    )
    return log_file


class _CountingDisplay(TileDisplay):
    def __init__(self) -> None:
        self.full = 0
        self.fallback = 0
        self.trimmed = 0

    def on_tile_ready(self, address, image, crop) -> None:
        if crop.is_full:
            self.full += 1
        else:
            self.fallback += 1

    def tiles_trimmed(self, trimmed) -> None:
        self.trimmed += len(trimmed)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Slippy-map tile engine - stream tiles around a point',
    )
    parser.add_argument('--profile', help='Profile name or path to a .toml file')
    parser.add_argument('--lat', type=float, help='Center latitude')
    parser.add_argument('--lon', type=float, help='Center longitude')
    parser.add_argument('--zoom', type=int, help='Zoom level')
    parser.add_argument('--half-tiles', type=int, help='Tiles on each side of center')
    parser.add_argument('--url-template', help='XYZ template with {z}/{x}/{y}')
    parser.add_argument('--mapbox-style', help='Mapbox style id or alias')
    parser.add_argument(
        '--zoom-steps',
        type=int,
        default=0,
        help='After the first pass, zoom in (or out if negative) by this many levels',
    )
    parser.add_argument(
        '--validate',
        action='store_true',
        help='Check the tile source with one request before streaming',
    )
    parser.add_argument('--save-profile', help='Save the effective settings under this name')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def settings_from_args(args: argparse.Namespace) -> EngineSettings:
    settings = load_profile(args.profile) if args.profile else EngineSettings()
    overrides: dict[str, object] = {}
    if args.lat is not None:
        overrides['center_lat'] = args.lat
    if args.lon is not None:
        overrides['center_lon'] = args.lon
    if args.zoom is not None:
        overrides['zoom'] = args.zoom
    if args.half_tiles is not None:
        overrides['half_tiles'] = args.half_tiles
    if args.url_template:
        overrides['url_template'] = args.url_template
        overrides['use_mapbox'] = False
    if args.mapbox_style:
        overrides['mapbox_style_id'] = args.mapbox_style
        overrides['use_mapbox'] = True
    token = os.getenv(TOKEN_ENV_VAR)
    if token and not settings.mapbox_access_token:
        overrides['mapbox_access_token'] = token
    if not overrides:
        return settings
    return EngineSettings.model_validate({**settings.model_dump(), **overrides})


async def run(settings: EngineSettings, *, zoom_steps: int = 0, validate: bool = False) -> int:
    url_builder = make_url_builder(settings)
    if validate:
        probe = url_builder.build(TileAddress(0, 0, 0))
        secret = (
            url_builder.access_token if isinstance(url_builder, MapboxUrlBuilder) else ''
        )
        await validate_tile_source(probe, safe_url=mask_token(probe, secret))
        logger.info('Tile source OK')

    display = _CountingDisplay()
    engine = MapEngine(settings, url_builder=url_builder)
    engine.add_observer(display)
    async with engine:
        await engine.wait_settled()
        log_engine_status(engine, 'first pass')
        step = 1 if zoom_steps > 0 else -1
        for _ in range(abs(zoom_steps)):
            if not engine.zoom_by(step):
                break
            await engine.wait_settled()
            log_engine_status(engine, f'z={engine.zoom}')
        await engine.trim.cancel()
        engine.trim.trim_now()
        log_thread_status('engine settled')

    logger.info(
        'Done: %d tiles shown, %d fallback crops, %d trimmed, %d failed',
        display.full,
        display.fallback,
        display.trimmed,
        engine.scheduler.failed,
    )
    return 0 if engine.scheduler.completed or not engine.scheduler.failed else 1


def main() -> int:
    """Main application entry point."""
    args = build_parser().parse_args()
    log_file = setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    logger.info('Starting slippy engine, log file %s', log_file)
    log_memory_usage('startup')

    try:
        settings = settings_from_args(args)
        if args.save_profile:
            path = save_profile(args.save_profile, settings)
            logger.info('Profile saved to %s', path)
        return asyncio.run(
            run(settings, zoom_steps=args.zoom_steps, validate=args.validate)
        )
    except (ConfigurationError, ValidationError) as e:
        logger.error('Configuration error: %s', e)
        return 2
    except FileNotFoundError as e:
        logger.error('%s', e)
        return 2
    except TileError as e:
        logger.error('Tile source error: %s', e)
        return 1
    except KeyboardInterrupt:
        logger.info('Interrupted')
        return 130


if __name__ == '__main__':
    sys.exit(main())

"""Tile URL builders for the two supported source kinds."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from shared.constants import (
    API_KEY_VISIBLE_PREFIX_LEN,
    MAPBOX_STYLES_BASE,
    RETINA_SUFFIX,
    TILE_SIZE,
    TILE_SIZE_512,
    resolve_style_id,
)
from shared.errors import ConfigurationError

if TYPE_CHECKING:
    from domain.models import TileAddress
    from domain.settings import EngineSettings


class UrlBuilder(Protocol):
    def build(self, address: TileAddress, *, interacting: bool = False) -> str: ...


def mask_token(url: str, token: str) -> str:
    """Hide all but the first characters of ``token`` inside ``url``."""
    if not token:
        return url
    visible = token[:API_KEY_VISIBLE_PREFIX_LEN]
    return url.replace(token, f'{visible}***')


class TemplateUrlBuilder:
    """Generic XYZ source: ``{z}``, ``{x}`` and ``{y}`` substitution."""

    def __init__(self, template: str) -> None:
        if not all(part in template for part in ('{z}', '{x}', '{y}')):
            msg = f'URL template must contain {{z}}, {{x}} and {{y}}: {template!r}'
            raise ConfigurationError(msg)
        self.template = template

    def build(self, address: TileAddress, *, interacting: bool = False) -> str:
        return (
            self.template.replace('{z}', str(address.zoom))
            .replace('{x}', str(address.x))
            .replace('{y}', str(address.y))
        )

    def __repr__(self) -> str:
        return f'TemplateUrlBuilder({self.template!r})'


class MapboxUrlBuilder:
    """
    Mapbox Styles API raster tiles.

    - URL: /styles/v1/{style_id}/tiles/{tileSize}/{z}/{x}/{y}{@2x}?access_token=...
    - Server tile size is 256 while the view is interacting (smaller tiles
      arrive faster) when ``speed_while_interacting`` is on; otherwise 512
      for displays drawing 512px tiles and 256 below that.
    """

    def __init__(
        self,
        style_id: str,
        access_token: str,
        *,
        display_tile_px: int = TILE_SIZE_512,
        speed_while_interacting: bool = True,
        use_retina: bool = False,
    ) -> None:
        if not access_token:
            msg = 'Mapbox source requires an access token'
            raise ConfigurationError(msg)
        self.style_id = resolve_style_id(style_id)
        self.access_token = access_token
        self.display_tile_px = display_tile_px
        self.speed_while_interacting = speed_while_interacting
        self.use_retina = use_retina

    def server_tile_size(self, *, interacting: bool) -> int:
        if self.speed_while_interacting and interacting:
            return TILE_SIZE
        return TILE_SIZE_512 if self.display_tile_px >= TILE_SIZE_512 else TILE_SIZE

    def build(self, address: TileAddress, *, interacting: bool = False) -> str:
        ts = self.server_tile_size(interacting=interacting)
        scale_suffix = RETINA_SUFFIX if self.use_retina else ''
        path = (
            f'{MAPBOX_STYLES_BASE}/{self.style_id}/tiles/{ts}/'
            f'{address.zoom}/{address.x}/{address.y}{scale_suffix}'
        )
        return f'{path}?access_token={self.access_token}'

    def __repr__(self) -> str:
        return f'MapboxUrlBuilder({self.style_id!r})'


def make_url_builder(settings: EngineSettings) -> TemplateUrlBuilder | MapboxUrlBuilder:
    if settings.use_mapbox:
        return MapboxUrlBuilder(
            settings.mapbox_style_id,
            settings.mapbox_access_token,
            display_tile_px=settings.display_tile_px,
            speed_while_interacting=settings.speed_while_interacting,
            use_retina=settings.use_retina,
        )
    return TemplateUrlBuilder(settings.url_template)

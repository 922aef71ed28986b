"""Tile fetch collaborator: build URL, GET bytes, decode with Pillow."""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from io import BytesIO
from typing import TYPE_CHECKING

import aiohttp
from PIL import Image, UnidentifiedImageError

from shared.errors import DecodeFailure, NetworkFailure
from tiles.urls import mask_token

if TYPE_CHECKING:
    from collections.abc import Callable

    from domain.models import TileAddress

logger = logging.getLogger(__name__)


def decode_tile(data: bytes, address: TileAddress) -> Image.Image:
    """Decode png/jpg/webp bytes into an RGBA image."""
    if not data:
        msg = f'Empty body for tile {address}'
        raise DecodeFailure(msg)
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            return img.convert('RGBA')
    except (UnidentifiedImageError, OSError, ValueError) as e:
        msg = f'Tile {address} is not a valid image: {e}'
        raise DecodeFailure(msg) from e


class HttpTileFetcher:
    """
    Async callable ``address -> image`` used by the fetch scheduler.

    - URL comes from ``url_for`` at the moment the fetch starts
    - Tokens are masked in every log record and error message
    - Non-200 responses and transport errors raise NetworkFailure
    - Undecodable bodies raise DecodeFailure; decode runs off the event loop
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        url_for: Callable[[TileAddress], str],
        *,
        timeout: float | None = None,
        secret: str = '',
    ) -> None:
        self._session = session
        self._url_for = url_for
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        self._secret = secret

    async def fetch_bytes(self, address: TileAddress) -> bytes:
        url = self._url_for(address)
        safe_url = mask_token(url, self._secret)
        logger.debug('GET %s', safe_url)
        try:
            async with self._session.get(url, timeout=self._timeout) as resp:
                sc = resp.status
                if sc != HTTPStatus.OK:
                    msg = f'HTTP {sc} for tile {address} url={safe_url}'
                    raise NetworkFailure(msg, status=sc)
                return await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = f'Transport error for tile {address} url={safe_url}: {e!r}'
            raise NetworkFailure(msg) from None

    async def __call__(self, address: TileAddress) -> Image.Image:
        data = await self.fetch_bytes(address)
        return await asyncio.to_thread(decode_tile, data, address)

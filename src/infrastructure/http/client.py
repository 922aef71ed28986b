from __future__ import annotations

import ssl
from urllib.parse import urlsplit, urlunsplit

import aiohttp
import certifi

from shared.constants import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_FORBIDDEN,
    HTTP_OK,
    HTTP_TIMEOUT_DEFAULT,
    HTTP_UNAUTHORIZED,
)
from shared.errors import NetworkFailure


def make_ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


def _without_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))


def make_http_session(
    *,
    pool_size: int = 0,
    timeout: float = HTTP_TIMEOUT_DEFAULT,
) -> aiohttp.ClientSession:
    """Create a client session with certifi CA bundle and a total timeout.

    ``pool_size`` caps simultaneous connections (0 means aiohttp's default).
    Tiles are cached in memory by the engine, so no HTTP-level cache is used.
    """
    connector = aiohttp.TCPConnector(ssl=make_ssl_context(), limit=pool_size or 100)
    client_timeout = aiohttp.ClientTimeout(total=timeout, connect=HTTP_CONNECT_TIMEOUT)
    return aiohttp.ClientSession(connector=connector, timeout=client_timeout)


async def validate_tile_source(url: str, *, safe_url: str | None = None) -> None:
    """Fetch one tile URL to check that the source and credentials work.

    Error messages show ``safe_url`` when given, otherwise the URL without
    its query string, where access tokens travel.
    """
    shown = safe_url or _without_query(url)
    timeout = aiohttp.ClientTimeout(total=10, connect=10, sock_connect=10, sock_read=10)
    try:
        async with (
            aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=make_ssl_context())) as client,
            client.get(url, timeout=timeout) as resp,
        ):
            sc = resp.status
            if sc == HTTP_OK:
                return
            if sc in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
                msg = (
                    'Invalid or expired access token. '
                    f'Check the token and try again ({shown}).'
                )
                raise NetworkFailure(msg, status=sc)
            msg = f'Tile server error (HTTP {sc}) for {shown}. Try again later.'
            raise NetworkFailure(msg, status=sc)
    except (TimeoutError, aiohttp.ClientConnectorError, aiohttp.ClientOSError):
        msg = (
            'No connection to the tile server. '
            'Check your network connection.'
        )
        raise NetworkFailure(msg) from None

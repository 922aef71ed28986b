"""HTTP client infrastructure."""
from infrastructure.http.client import (
    make_http_session,
    make_ssl_context,
    validate_tile_source,
)

__all__ = [
    'make_http_session',
    'make_ssl_context',
    'validate_tile_source',
]

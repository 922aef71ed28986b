"""Error kinds raised by the tile engine.

Per-tile failures (``NetworkFailure``, ``DecodeFailure``) are local: the
scheduler logs them and frees the slot, they never reach camera logic.
``ConfigurationError`` is raised by settings validation and by the
projection for out-of-range zoom levels; camera APIs clamp instead.
"""

from __future__ import annotations


class TileError(Exception):
    """Base class for all engine errors."""


class NetworkFailure(TileError):
    """Transport or HTTP level failure while fetching a tile."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class DecodeFailure(TileError):
    """Bytes were received but could not be decoded as an image."""


class ConfigurationError(TileError, ValueError):
    """Invalid configuration value or out-of-range argument."""

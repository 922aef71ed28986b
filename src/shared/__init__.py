"""Shared utilities and helpers."""
from shared.diagnostics import (
    log_engine_status,
    log_memory_usage,
    log_thread_status,
)
from shared.errors import ConfigurationError, DecodeFailure, NetworkFailure, TileError

__all__ = [
    'ConfigurationError',
    'DecodeFailure',
    'NetworkFailure',
    'TileError',
    'log_engine_status',
    'log_memory_usage',
    'log_thread_status',
]

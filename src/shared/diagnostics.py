"""
Diagnostic utilities.

Process memory and thread snapshots (psutil) plus a one-shot engine report.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

import psutil

if TYPE_CHECKING:
    from engine.map_engine import MapEngine

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def get_memory_info() -> dict[str, Any]:
    """Get process and system memory usage."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()
        return {
            'process_rss_mb': round(memory_info.rss / _MB, 2),
            'process_vms_mb': round(memory_info.vms / _MB, 2),
            'system_total_mb': round(system_memory.total / _MB, 2),
            'system_available_mb': round(system_memory.available / _MB, 2),
            'system_used_percent': system_memory.percent,
        }
    except psutil.Error as e:
        return {'error': f'Failed to get memory info: {e}'}


def get_thread_info() -> dict[str, Any]:
    """Get information about active threads."""
    info: dict[str, Any] = {
        'active_count': threading.active_count(),
        'thread_names': [t.name for t in threading.enumerate()],
    }
    try:
        info['system_threads'] = psutil.Process().num_threads()
    except psutil.Error as e:
        logger.debug('Failed to get system thread count: %s', e)
    return info


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )


def log_thread_status(context: str = '') -> None:
    """Quick thread status logging."""
    thread_info = get_thread_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Thread status%s: Active=%s, System=%s',
        context_label,
        thread_info.get('active_count', 'N/A'),
        thread_info.get('system_threads', 'N/A'),
    )


def engine_status(engine: MapEngine) -> dict[str, Any]:
    stats = engine.cache.stats()
    scheduler = engine.scheduler
    return {
        'zoom': engine.zoom,
        'epoch': engine.epoch,
        'needed': len(engine.needed),
        'displayed': len(engine.displayed),
        'cache_size': stats.size,
        'cache_capacity': stats.capacity,
        'cache_hits': stats.hits,
        'cache_misses': stats.misses,
        'cache_evictions': stats.evictions,
        'active_loads': scheduler.active_loads,
        'pending': scheduler.pending_count,
        'completed': scheduler.completed,
        'failed': scheduler.failed,
        'peak_active': scheduler.peak_active,
        'stale_results': engine.stale_results,
    }


def log_engine_status(
    engine: MapEngine,
    context: str = '',
    level: int = logging.INFO,
) -> None:
    """Log engine counters together with a memory snapshot."""
    status = engine_status(engine)
    context_label = f' ({context})' if context else ''
    logger.log(
        level,
        'Engine%s: z=%d epoch=%d needed=%d displayed=%d cache=%d/%d '
        'hits=%d misses=%d evictions=%d',
        context_label,
        status['zoom'],
        status['epoch'],
        status['needed'],
        status['displayed'],
        status['cache_size'],
        status['cache_capacity'],
        status['cache_hits'],
        status['cache_misses'],
        status['cache_evictions'],
    )
    logger.log(
        level,
        'Loader%s: active=%d pending=%d completed=%d failed=%d peak=%d stale=%d',
        context_label,
        status['active_loads'],
        status['pending'],
        status['completed'],
        status['failed'],
        status['peak_active'],
        status['stale_results'],
    )
    log_memory_usage(context)

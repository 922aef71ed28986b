"""Map engine and its display notifications."""

from engine.events import EngineEvent, EventData, Observable, Observer, TileDisplay
from engine.map_engine import MapEngine

__all__ = [
    'EngineEvent',
    'EventData',
    'MapEngine',
    'Observable',
    'Observer',
    'TileDisplay',
]

"""Display-side notifications (Observer) emitted by the map engine."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from shared.constants import (
    ENGINE_EVENT_NEEDED_SET_CHANGED,
    ENGINE_EVENT_TILE_READY,
    ENGINE_EVENT_TILES_TRIMMED,
)

if TYPE_CHECKING:
    from domain.models import CropRect, TileAddress

logger = logging.getLogger(__name__)


class EngineEvent(str, Enum):
    """Events the engine reports to the display layer."""

    TILE_READY = ENGINE_EVENT_TILE_READY
    NEEDED_SET_CHANGED = ENGINE_EVENT_NEEDED_SET_CHANGED
    TILES_TRIMMED = ENGINE_EVENT_TILES_TRIMMED


class EventData(BaseModel):
    """Envelope for one engine notification."""

    event: EngineEvent
    timestamp: float = Field(default_factory=time.time)
    data: dict[str, Any] = Field(default_factory=dict)


class Observer:
    """Base observer interface."""

    def update(self, event_data: EventData) -> None:
        msg = 'update() must be implemented by subclasses'
        raise NotImplementedError(msg)


class TileDisplay(Observer):
    """
    Observer that splits engine events into three display callbacks.

    ``on_tile_ready`` fires for a direct cache hit, a fallback crop and a
    completed fetch alike; ``crop`` tells which part of ``image`` to show.
    """

    def update(self, event_data: EventData) -> None:
        data = event_data.data
        if event_data.event == EngineEvent.TILE_READY:
            self.on_tile_ready(data['address'], data['image'], data['crop'])
        elif event_data.event == EngineEvent.NEEDED_SET_CHANGED:
            self.needed_set_changed(data['needed'])
        elif event_data.event == EngineEvent.TILES_TRIMMED:
            self.tiles_trimmed(data['trimmed'])

    def on_tile_ready(self, address: TileAddress, image: Any, crop: CropRect) -> None:
        pass

    def needed_set_changed(self, needed: frozenset[TileAddress]) -> None:
        pass

    def tiles_trimmed(self, trimmed: frozenset[TileAddress]) -> None:
        pass


class Observable:
    """Mixin class to add Observer pattern functionality."""

    def __init__(self) -> None:
        self._observers: list[Observer] = []

    def add_observer(self, observer: Observer) -> None:
        """Add an observer to receive notifications."""
        if observer not in self._observers:
            self._observers.append(observer)
            logger.debug('Added observer: %s', observer.__class__.__name__)

    def remove_observer(self, observer: Observer) -> None:
        """Remove an observer."""
        if observer in self._observers:
            self._observers.remove(observer)
            logger.debug('Removed observer: %s', observer.__class__.__name__)

    def notify_observers(
        self,
        event: EngineEvent,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Notify all observers of an event."""
        event_data = EventData(event=event, data=data or {})
        for observer in list(self._observers):
            try:
                observer.update(event_data)
            except Exception:
                logger.exception(
                    'Error notifying observer %s',
                    observer.__class__.__name__,
                )

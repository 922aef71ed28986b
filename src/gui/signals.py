from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from PySide6.QtCore import QObject, Signal

from engine.events import TileDisplay

if TYPE_CHECKING:
    from domain.models import CropRect, TileAddress
    from engine.map_engine import MapEngine

logger = logging.getLogger(__name__)


class _SignalDisplay(TileDisplay):
    def __init__(self, owner: EngineSignals) -> None:
        self._owner = owner

    def on_tile_ready(self, address: TileAddress, image: Any, crop: CropRect) -> None:
        self._owner.tile_ready.emit(address, image, crop)

    def needed_set_changed(self, needed: frozenset[TileAddress]) -> None:
        self._owner.needed_changed.emit(needed)

    def tiles_trimmed(self, trimmed: frozenset[TileAddress]) -> None:
        self._owner.tiles_trimmed.emit(trimmed)


class EngineSignals(QObject):
    """
    Qt bridge for engine notifications.

    Widgets connect to the signals; with the engine running on a worker
    thread, Qt queues the emissions into the GUI thread automatically.
    """

    tile_ready = Signal(object, object, object)  # address, image, crop
    needed_changed = Signal(object)  # frozenset of addresses
    tiles_trimmed = Signal(object)  # frozenset of addresses

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.display = _SignalDisplay(self)

    def attach(self, engine: MapEngine) -> None:
        engine.add_observer(self.display)
        logger.debug('EngineSignals attached')

    def detach(self, engine: MapEngine) -> None:
        engine.remove_observer(self.display)

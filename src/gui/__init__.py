"""Qt side of the tile engine."""

from gui.signals import EngineSignals

__all__ = ['EngineSignals']

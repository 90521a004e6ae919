"""Undo/redo history over graph snapshots."""

from .manager import HistoryManager

__all__ = ["HistoryManager"]

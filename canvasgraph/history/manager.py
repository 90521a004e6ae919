"""
History management for canvasgraph.

This module keeps a bounded undo/redo stack of whole-board snapshots. The
stack and cursor only move on push, undo and redo; restoring a snapshot is the
caller's job and must not push a new entry.
"""

import logging
from typing import Iterable, List, Optional

from ..config import config
from ..models import Block, Edge, GraphSnapshot


class HistoryManager:
    """
    Bounded undo/redo stack over GraphSnapshot entries.

    The cursor points at the current state; entries after it are redo states.
    """

    def __init__(self, max_depth: Optional[int] = None):
        """
        Initialize the history manager.

        Args:
            max_depth: Maximum number of snapshots kept (config history.max_depth when omitted)
        """
        self.max_depth = max_depth if max_depth is not None else config.history_max_depth
        if self.max_depth < 1:
            raise ValueError("History depth must be at least 1")

        self._stack: List[GraphSnapshot] = []
        self._cursor = -1

    def push_state(self, blocks: Iterable[Block], edges: Iterable[Edge]) -> GraphSnapshot:
        """
        Record a new snapshot, discarding any redo states.

        Args:
            blocks: Blocks of the state to record
            edges: Edges of the state to record

        Returns:
            The recorded snapshot
        """
        snapshot = GraphSnapshot(
            blocks=tuple(block.model_copy(deep=True) for block in blocks),
            edges=tuple(edge.model_copy(deep=True) for edge in edges),
        )

        del self._stack[self._cursor + 1:]
        self._stack.append(snapshot)
        self._cursor = len(self._stack) - 1

        if len(self._stack) > self.max_depth:
            dropped = len(self._stack) - self.max_depth
            del self._stack[:dropped]
            self._cursor -= dropped
            logging.debug(f"History depth {self.max_depth} exceeded, dropped {dropped} oldest snapshot(s)")

        return snapshot

    def undo(self) -> Optional[GraphSnapshot]:
        """
        Step back one snapshot.

        Returns:
            The snapshot to restore, or None when there is nothing to undo
        """
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._stack[self._cursor]

    def redo(self) -> Optional[GraphSnapshot]:
        """
        Step forward one snapshot.

        Returns:
            The snapshot to restore, or None when there is nothing to redo
        """
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._stack[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._stack) - 1

    @property
    def cursor(self) -> int:
        return self._cursor

    def current(self) -> Optional[GraphSnapshot]:
        """Get the snapshot at the cursor, if any."""
        if self._cursor < 0:
            return None
        return self._stack[self._cursor]

    def clear(self) -> None:
        """Forget every snapshot."""
        self._stack = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._stack)

"""
Tests for the undo/redo history manager.
"""

import unittest

from canvasgraph.history import HistoryManager
from canvasgraph.models import BlockType, Position, create_block, create_edge


class TestHistoryManager(unittest.TestCase):
    """Test the bounded snapshot stack."""

    def setUp(self):
        self.history = HistoryManager(max_depth=5)
        self.a = create_block(BlockType.TEXT)
        self.b = create_block(BlockType.CHAT)

    def test_empty_history(self):
        """Test that a fresh manager can neither undo nor redo."""
        self.assertFalse(self.history.can_undo)
        self.assertFalse(self.history.can_redo)
        self.assertIsNone(self.history.undo())
        self.assertIsNone(self.history.redo())
        self.assertIsNone(self.history.current())
        self.assertEqual(self.history.cursor, -1)

    def test_single_state_cannot_undo(self):
        """Test that the baseline snapshot is not undoable."""
        self.history.push_state([], [])
        self.assertFalse(self.history.can_undo)
        self.assertIsNone(self.history.undo())

    def test_undo_redo(self):
        """Test stepping back and forth through snapshots."""
        self.history.push_state([], [])
        self.history.push_state([self.a], [])
        self.history.push_state([self.a, self.b], [])

        self.assertEqual(self.history.undo().blocks, (self.a,))
        self.assertEqual(len(self.history.undo().blocks), 0)
        self.assertFalse(self.history.can_undo)

        self.assertEqual(self.history.redo().blocks, (self.a,))
        self.assertEqual(self.history.redo().blocks, (self.a, self.b))
        self.assertFalse(self.history.can_redo)

    def test_push_discards_redo_states(self):
        """Test that a new state after undo drops the redo branch."""
        self.history.push_state([], [])
        self.history.push_state([self.a], [])
        self.history.undo()

        self.history.push_state([self.b], [])

        self.assertFalse(self.history.can_redo)
        self.assertEqual(len(self.history), 2)
        self.assertEqual(self.history.current().blocks, (self.b,))

    def test_depth_bound(self):
        """Test that the oldest snapshots are dropped beyond max_depth."""
        for i in range(8):
            self.history.push_state([self.a.model_copy(update={"title": str(i)})], [])

        self.assertEqual(len(self.history), 5)
        self.assertEqual(self.history.cursor, 4)

        titles = []
        while self.history.can_undo:
            titles.append(self.history.undo().blocks[0].title)
        self.assertEqual(titles, ["6", "5", "4", "3"])

    def test_snapshots_are_isolated(self):
        """Test that recorded snapshots do not share state with the caller."""
        blocks = [self.a]
        edges = [create_edge(self.a.id, self.b.id)]
        snapshot = self.history.push_state(blocks, edges)

        blocks.append(self.b)
        edges.clear()

        self.assertEqual(len(snapshot.blocks), 1)
        self.assertEqual(len(snapshot.edges), 1)

    def test_clear(self):
        self.history.push_state([], [])
        self.history.push_state([self.a], [])
        self.history.clear()

        self.assertEqual(len(self.history), 0)
        self.assertFalse(self.history.can_undo)

    def test_invalid_depth(self):
        with self.assertRaises(ValueError):
            HistoryManager(max_depth=0)

    def test_default_depth_from_config(self):
        self.assertEqual(HistoryManager().max_depth, 50)

    def test_block_map(self):
        moved = self.a.model_copy(update={"position": Position(x=1, y=2)})
        snapshot = self.history.push_state([moved, self.b], [])
        self.assertEqual(snapshot.block_map()[self.a.id].position, Position(x=1, y=2))


if __name__ == '__main__':
    unittest.main()

"""
In-memory board store for canvasgraph.

This module provides a dict-backed store used by tests and by embedders that
do not need durable persistence. It records every call and can be told to
reject the next call of a given operation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..errors import StoreError
from ..models import Block, Edge, PositionUpdate
from ..models.blocks import new_id
from .base import BoardStore


class MemoryBoardStore(BoardStore):
    """
    Board store keeping everything in process memory.
    """

    def __init__(self):
        """Initialize an empty store."""
        self._blocks: Dict[str, Block] = {}
        self._edges: Dict[str, Edge] = {}
        self._failures: Dict[str, List[str]] = {}
        self.calls: List[Tuple[str, Any]] = []

    def fail_next(self, operation: str, message: str = "rejected by store") -> None:
        """
        Make the next call of an operation raise StoreError.

        Args:
            operation: Method name, e.g. "create_block"
            message: Error message to raise with
        """
        self._failures.setdefault(operation, []).append(message)

    def calls_to(self, operation: str) -> List[Any]:
        """Get the arguments of every recorded call to an operation."""
        return [args for name, args in self.calls if name == operation]

    def _record(self, operation: str, args: Any) -> None:
        self.calls.append((operation, args))
        pending = self._failures.get(operation)
        if pending:
            raise StoreError(f"{operation}: {pending.pop(0)}")

    def list_blocks(self, board_id: str) -> List[Block]:
        self._record("list_blocks", board_id)
        return [block for block in self._blocks.values() if block.board_id == board_id]

    def list_edges(self, board_id: str) -> List[Edge]:
        self._record("list_edges", board_id)
        return [edge for edge in self._edges.values() if edge.board_id == board_id]

    def create_block(self, board_id: str, block: Block) -> Block:
        self._record("create_block", block.id)
        if block.id in self._blocks:
            raise StoreError(f"Block {block.id} already exists")

        now = datetime.now()
        stored = block.model_copy(update={"board_id": board_id, "created_at": now, "updated_at": now})
        self._blocks[stored.id] = stored
        return stored

    def update_block(self, block_id: str, fields: Dict[str, Any]) -> None:
        self._record("update_block", (block_id, dict(fields)))
        block = self._get_block(block_id)
        data = block.model_dump()
        data.update(fields)
        data["updated_at"] = datetime.now()
        self._blocks[block_id] = Block.model_validate(data)

    def delete_block(self, block_id: str) -> None:
        self._record("delete_block", block_id)
        self._get_block(block_id)
        del self._blocks[block_id]
        for edge_id in [edge.id for edge in self._edges.values()
                        if block_id in (edge.source_block_id, edge.target_block_id)]:
            del self._edges[edge_id]

    def update_positions(self, batch: List[PositionUpdate]) -> None:
        self._record("update_positions", list(batch))
        for update in batch:
            self._get_block(update.id)
        for update in batch:
            block = self._blocks[update.id]
            self._blocks[update.id] = block.model_copy(update={
                "position": block.position.model_copy(update={"x": update.x, "y": update.y}),
                "updated_at": datetime.now(),
            })

    def create_edge(self, board_id: str, source_id: str, target_id: str,
                    edge_id: Optional[str] = None) -> Edge:
        self._record("create_edge", (source_id, target_id))
        edge_id = edge_id or new_id()
        if edge_id in self._edges:
            raise StoreError(f"Edge {edge_id} already exists")

        edge = Edge(
            id=edge_id,
            board_id=board_id,
            source_block_id=source_id,
            target_block_id=target_id,
            created_at=datetime.now(),
        )
        self._edges[edge.id] = edge
        return edge

    def delete_edge(self, edge_id: str) -> None:
        self._record("delete_edge", edge_id)
        if edge_id not in self._edges:
            raise StoreError(f"Edge {edge_id} not found")
        del self._edges[edge_id]

    def _get_block(self, block_id: str) -> Block:
        block = self._blocks.get(block_id)
        if block is None:
            raise StoreError(f"Block {block_id} not found")
        return block

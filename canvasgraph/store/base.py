"""
Base board store interface for canvasgraph.

This module defines the abstract keyed-store interface the graph controller
persists through. Every store maps failures onto StoreError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import Block, Edge, PositionUpdate


class BoardStore(ABC):
    """
    Abstract base class for all board stores.

    A store keeps the blocks and edges of many boards keyed by id. It performs
    no graph validation of its own.
    """

    @abstractmethod
    def list_blocks(self, board_id: str) -> List[Block]:
        """
        Retrieve all blocks of a board.

        Returns:
            Blocks in creation order
        """
        pass

    @abstractmethod
    def list_edges(self, board_id: str) -> List[Edge]:
        """
        Retrieve all edges of a board.

        Returns:
            Edges in creation order
        """
        pass

    @abstractmethod
    def create_block(self, board_id: str, block: Block) -> Block:
        """
        Persist a new block, keeping its client-generated id.

        Returns:
            The block as stored
        """
        pass

    @abstractmethod
    def update_block(self, block_id: str, fields: Dict[str, Any]) -> None:
        """
        Apply a partial update given as Block attribute names.
        """
        pass

    @abstractmethod
    def delete_block(self, block_id: str) -> None:
        """
        Delete a block together with every edge touching it, in one step.
        """
        pass

    @abstractmethod
    def update_positions(self, batch: List[PositionUpdate]) -> None:
        """
        Move several blocks in one call.

        A store that cannot apply the batch atomically reports the ids it
        already moved through StoreError.applied when it fails part way.
        """
        pass

    @abstractmethod
    def create_edge(self, board_id: str, source_id: str, target_id: str,
                    edge_id: Optional[str] = None) -> Edge:
        """
        Persist a new edge.

        Returns:
            The edge as stored
        """
        pass

    @abstractmethod
    def delete_edge(self, edge_id: str) -> None:
        """
        Delete an edge.
        """
        pass

"""
Canvasgraph: a graph engine for visual AI canvases.

Blocks of content are connected by directed edges into chat blocks, which
receive the aggregated context of everything flowing into them.
"""

__version__ = "0.1.0"
__author__ = "Canvasgraph Project"

# Import main components
from .models import Block, BlockType, Edge, Position, ViewportState, DropPayload
from .context import ContextAggregator, aggregate, format_context_for_ai
from .history import HistoryManager
from .placement import PlacementResolver, screen_to_canvas
from .store import BoardStore, MemoryBoardStore, DuckDBBoardStore, RestBoardStore, create_store
from .controller import GraphController
from .errors import CanvasGraphError, InvalidEdge, PersistenceFailure, PlacementUnresolved

__all__ = [
    "Block",
    "BlockType",
    "Edge",
    "Position",
    "ViewportState",
    "DropPayload",
    "ContextAggregator",
    "aggregate",
    "format_context_for_ai",
    "HistoryManager",
    "PlacementResolver",
    "screen_to_canvas",
    "BoardStore",
    "MemoryBoardStore",
    "DuckDBBoardStore",
    "RestBoardStore",
    "create_store",
    "GraphController",
    "CanvasGraphError",
    "InvalidEdge",
    "PersistenceFailure",
    "PlacementUnresolved",
]

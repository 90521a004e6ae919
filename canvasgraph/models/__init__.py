"""Data models for canvasgraph."""

from .blocks import (
    Block,
    BlockType,
    Edge,
    ParsingStatus,
    Position,
    Size,
    create_block,
    create_edge,
    next_parsing_status,
)
from .graph import (
    AggregatedContext,
    ConnectedContext,
    DropPayload,
    GraphChange,
    GraphSnapshot,
    HistoryEntry,
    PositionUpdate,
    ViewportState,
)

__all__ = [
    "Block",
    "BlockType",
    "Edge",
    "ParsingStatus",
    "Position",
    "Size",
    "create_block",
    "create_edge",
    "next_parsing_status",
    "AggregatedContext",
    "ConnectedContext",
    "DropPayload",
    "GraphChange",
    "GraphSnapshot",
    "HistoryEntry",
    "PositionUpdate",
    "ViewportState",
]

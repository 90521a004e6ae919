"""
Graph-level models for canvasgraph.

Snapshots, change events, aggregated AI context and the viewport/drop
structures consumed by the placement resolver.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .blocks import Block, BlockType, Edge, Position


class GraphSnapshot(BaseModel):
    """
    The full (blocks, edges) state of one board at a point in time.
    """

    model_config = ConfigDict(frozen=True)

    blocks: Tuple[Block, ...] = Field(
        default_factory=tuple,
        description="Blocks in board order"
    )

    edges: Tuple[Edge, ...] = Field(
        default_factory=tuple,
        description="Edges in creation order"
    )

    def block_map(self) -> Dict[str, Block]:
        """Index the snapshot's blocks by id."""
        return {block.id: block for block in self.blocks}


# Undo stack entries are plain snapshots
HistoryEntry = GraphSnapshot


class GraphChange(BaseModel):
    """
    Event emitted to structural-change subscribers after a committed mutation.
    """

    kind: str = Field(
        ...,
        description="What happened (load, block_added, edge_added, history, ...)"
    )

    block_ids: List[str] = Field(
        default_factory=list,
        description="Blocks affected by the change"
    )

    edge_ids: List[str] = Field(
        default_factory=list,
        description="Edges affected by the change"
    )


class PositionUpdate(BaseModel):
    """One entry of a batched position commit."""

    id: str
    x: float
    y: float


class ConnectedContext(BaseModel):
    """
    Structured description of one block contributing to a chat's context.
    """

    type: BlockType
    label: str
    title: str
    content: str = ""
    image_url: Optional[str] = None
    instruction_prompt: Optional[str] = None


class AggregatedContext(BaseModel):
    """
    Prompt-ready payload derived from a block's incoming connections.
    """

    text_context: str = Field(
        "",
        description="Formatted segments joined by the context separator"
    )

    image_urls: List[str] = Field(
        default_factory=list,
        description="Image references in the same order as their segments"
    )

    items: List[ConnectedContext] = Field(
        default_factory=list,
        description="One entry per contributing block"
    )


class ViewportState(BaseModel):
    """
    Pan/zoom transform of the canvas container.

    origin is the screen-pixel top-left of the container, or None while the
    container is not mounted.
    """

    origin: Optional[Position] = None
    pan: Position = Field(default_factory=Position)
    zoom: float = 1.0
    width: Optional[float] = None
    height: Optional[float] = None


class DropPayload(BaseModel):
    """
    A drag-and-drop payload: a discriminator plus the dragged source item.
    """

    kind: str = Field(..., description="Discriminator such as 'knowledge' or 'block-type'")
    item: Dict[str, Any] = Field(default_factory=dict, description="The dragged source item")

    @classmethod
    def from_data_transfer(cls, data: Dict[str, str]) -> Optional["DropPayload"]:
        """
        Parse browser drag-and-drop data keyed by MIME type.

        Args:
            data: Mapping of MIME type to the string stored under it

        Returns:
            The payload, or None when nothing usable was dropped
        """
        block_type = data.get("application/block-type")
        if block_type:
            return cls(kind="block-type", item={"type": block_type})

        if data.get("application/brain-drop"):
            return cls(kind="brain-drop", item={})

        raw = data.get("application/json")
        if not raw:
            return None

        try:
            parsed = json.loads(raw)
        except ValueError:
            return None

        if not isinstance(parsed, dict) or not isinstance(parsed.get("type"), str):
            return None

        item = parsed.get("item")
        return cls(kind=parsed["type"], item=item if isinstance(item, dict) else {})

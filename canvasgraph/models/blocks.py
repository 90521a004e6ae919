"""
Block and edge models for canvasgraph.

This module defines the nodes (blocks) and directed connections (edges) that
make up a board, together with the factory functions that apply per-type
defaults and enforce the edge invariants. Nothing here talks to persistence.
"""

import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidEdge, InvalidParsingTransition


class BlockType(str, Enum):
    """The closed set of block types a canvas can hold."""

    TEXT = "text"
    IMAGE = "image"
    URL = "url"
    DOCUMENT = "document"
    VIDEO = "video"
    GROUP = "group"
    CHAT = "chat"
    BRAIN = "brain"
    CREATIVE = "creative"


class ParsingStatus(str, Enum):
    """Extraction state of document and url blocks."""

    NONE = "none"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_TITLES: Dict[BlockType, str] = {
    BlockType.TEXT: "Text Block",
    BlockType.IMAGE: "Image",
    BlockType.URL: "URL",
    BlockType.DOCUMENT: "Document",
    BlockType.VIDEO: "Video",
    BlockType.GROUP: "Group",
    BlockType.CHAT: "AI Chat",
    BlockType.BRAIN: "Central Brain",
    BlockType.CREATIVE: "Creative",
}

DEFAULT_SIZES: Dict[BlockType, tuple] = {
    BlockType.TEXT: (280.0, 200.0),
    BlockType.IMAGE: (280.0, 280.0),
    BlockType.URL: (320.0, 240.0),
    BlockType.DOCUMENT: (320.0, 260.0),
    BlockType.VIDEO: (360.0, 260.0),
    BlockType.GROUP: (480.0, 360.0),
    BlockType.CHAT: (400.0, 500.0),
    BlockType.BRAIN: (320.0, 360.0),
    BlockType.CREATIVE: (360.0, 420.0),
}

# Allowed parsing status moves; completed/failed may be re-parsed
PARSING_TRANSITIONS: Dict[ParsingStatus, tuple] = {
    ParsingStatus.NONE: (ParsingStatus.PENDING,),
    ParsingStatus.PENDING: (ParsingStatus.PROCESSING,),
    ParsingStatus.PROCESSING: (ParsingStatus.COMPLETED, ParsingStatus.FAILED),
    ParsingStatus.COMPLETED: (ParsingStatus.PENDING,),
    ParsingStatus.FAILED: (ParsingStatus.PENDING,),
}


class Position(BaseModel):
    """A point in canvas (or screen) space."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    """Rendered size of a block."""

    model_config = ConfigDict(frozen=True)

    width: float
    height: float


class Block(BaseModel):
    """
    A single content item on the canvas.

    Blocks are immutable; every edit produces a copy via model_copy(update=...).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        description="Opaque unique identifier"
    )

    board_id: Optional[str] = Field(
        None,
        description="The board this block belongs to"
    )

    type: BlockType = Field(
        ...,
        description="The block type, fixed at creation"
    )

    position: Position = Field(
        default_factory=Position,
        description="Top-left corner in canvas space"
    )

    size: Optional[Size] = Field(
        None,
        description="Rendered size; per-type default when created through create_block"
    )

    title: str = Field(
        "",
        description="Display label"
    )

    content: str = Field(
        "",
        description="Text payload whose meaning depends on the type"
    )

    url: Optional[str] = Field(None, description="External resource URL")
    file_url: Optional[str] = Field(None, description="Public URL of an uploaded file")
    file_path: Optional[str] = Field(None, description="Storage path of an uploaded file")
    color: Optional[str] = Field(None, description="Accent colour")

    instruction_prompt: Optional[str] = Field(
        None,
        description="Hint telling the AI how to use this block's content"
    )

    group_id: Optional[str] = Field(
        None,
        description="Id of the group block that encloses this block"
    )

    parsing_status: ParsingStatus = Field(
        ParsingStatus.NONE,
        description="Extraction state for document/url blocks"
    )

    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Type-specific extras (member_ids, linked_items, headline, ...)"
    )

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_title(self) -> str:
        """Title, or the type's default title when empty."""
        return self.title or DEFAULT_TITLES.get(self.type, "Untitled")

    def to_row(self) -> Dict[str, Any]:
        """
        Flatten the block into the column layout used by the stores.

        Returns:
            Dictionary keyed by column name
        """
        return {
            "id": self.id,
            "agent_board_id": self.board_id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "url": self.url,
            "file_path": self.file_path,
            "file_url": self.file_url,
            "position_x": self.position.x,
            "position_y": self.position.y,
            "width": self.size.width if self.size else None,
            "height": self.size.height if self.size else None,
            "color": self.color,
            "instruction_prompt": self.instruction_prompt,
            "group_id": self.group_id,
            "parsing_status": self.parsing_status.value,
            "metadata": self.metadata,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Block":
        """
        Build a block from a store row.

        Args:
            row: Column dictionary as produced by to_row or returned by a store

        Returns:
            The corresponding Block
        """
        metadata = row.get("metadata") or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata) if metadata else {}

        size = None
        if row.get("width") is not None and row.get("height") is not None:
            size = Size(width=row["width"], height=row["height"])

        return cls(
            id=str(row["id"]),
            board_id=row.get("agent_board_id"),
            type=BlockType(row["type"]),
            position=Position(x=row.get("position_x") or 0.0, y=row.get("position_y") or 0.0),
            size=size,
            title=row.get("title") or "",
            content=row.get("content") or "",
            url=row.get("url"),
            file_path=row.get("file_path"),
            file_url=row.get("file_url"),
            color=row.get("color"),
            instruction_prompt=row.get("instruction_prompt"),
            group_id=row.get("group_id"),
            parsing_status=ParsingStatus(row.get("parsing_status") or "none"),
            metadata=metadata,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


class Edge(BaseModel):
    """A directed "flows into" connection between two blocks."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque unique identifier")
    board_id: Optional[str] = Field(None, description="The board this edge belongs to")
    source_block_id: str = Field(..., description="Block the content flows from")
    target_block_id: str = Field(..., description="Block the content flows into")
    edge_type: str = Field("default", description="Rendering style key")
    color: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        """Flatten the edge into the column layout used by the stores."""
        return {
            "id": self.id,
            "agent_board_id": self.board_id,
            "source_block_id": self.source_block_id,
            "target_block_id": self.target_block_id,
            "edge_type": self.edge_type,
            "color": self.color,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Edge":
        """Build an edge from a store row."""
        return cls(
            id=str(row["id"]),
            board_id=row.get("agent_board_id"),
            source_block_id=str(row["source_block_id"]),
            target_block_id=str(row["target_block_id"]),
            edge_type=row.get("edge_type") or "default",
            color=row.get("color"),
            created_at=row.get("created_at"),
        )


def new_id() -> str:
    """Generate a fresh block or edge id."""
    return str(uuid.uuid4())


def create_block(
    block_type: Any,
    position: Optional[Position] = None,
    overrides: Optional[Dict[str, Any]] = None,
    board_id: Optional[str] = None,
) -> Block:
    """
    Create a new block with the defaults for its type.

    Args:
        block_type: A BlockType or its string value
        position: Canvas position; origin when omitted
        overrides: Field values replacing the defaults (id and type are ignored)
        board_id: Owning board

    Returns:
        A new Block

    Raises:
        ValueError: If block_type is not a known type
    """
    block_type = BlockType(block_type)
    width, height = DEFAULT_SIZES[block_type]

    fields: Dict[str, Any] = {
        "id": new_id(),
        "board_id": board_id,
        "type": block_type,
        "position": position or Position(),
        "size": Size(width=width, height=height),
        "title": DEFAULT_TITLES[block_type],
        "parsing_status": ParsingStatus.NONE,
    }

    for key, value in (overrides or {}).items():
        if key in ("id", "type"):
            continue
        if value is None and key in ("title", "content"):
            continue
        fields[key] = value

    return Block(**fields)


def create_edge(
    source_id: str,
    target_id: str,
    existing_edges: Iterable[Edge] = (),
    board_id: Optional[str] = None,
) -> Edge:
    """
    Create a directed edge after checking the edge invariants.

    Args:
        source_id: Block the content flows from
        target_id: Block the content flows into
        existing_edges: The candidate edge set to check duplicates against
        board_id: Owning board

    Returns:
        A new Edge

    Raises:
        InvalidEdge: On a self-loop or a duplicate directed edge
    """
    if source_id == target_id:
        raise InvalidEdge(source_id, target_id, "self-loop")

    for edge in existing_edges:
        if edge.source_block_id == source_id and edge.target_block_id == target_id:
            raise InvalidEdge(source_id, target_id, "duplicate")

    return Edge(
        id=new_id(),
        board_id=board_id,
        source_block_id=source_id,
        target_block_id=target_id,
    )


def next_parsing_status(current: ParsingStatus, requested: Any) -> ParsingStatus:
    """
    Validate a parsing status change.

    Args:
        current: The block's current status
        requested: The requested status (enum or string)

    Returns:
        The requested status as a ParsingStatus

    Raises:
        InvalidParsingTransition: If the move is not allowed
    """
    requested = ParsingStatus(requested)
    if requested == current:
        return requested
    if requested not in PARSING_TRANSITIONS[current]:
        raise InvalidParsingTransition(current.value, requested.value)
    return requested


def block_fields_to_row(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a partial block update into store columns.

    Args:
        fields: Block attribute names mapped to new values

    Returns:
        Column dictionary for the store
    """
    row: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "position":
            row["position_x"] = value.x
            row["position_y"] = value.y
        elif key == "size":
            row["width"] = value.width if value else None
            row["height"] = value.height if value else None
        elif key == "parsing_status":
            row["parsing_status"] = ParsingStatus(value).value
        elif key == "board_id":
            row["agent_board_id"] = value
        else:
            row[key] = value
    return row


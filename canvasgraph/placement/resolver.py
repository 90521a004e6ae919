"""
Placement resolver for canvasgraph.

This module turns insertion requests (toolbar clicks, drag-and-drop payloads,
clipboard pastes and chat output pushed to a creative) into fully formed
blocks at a canvas position. It never talks to persistence.
"""

import logging
import random
import re
from typing import Any, Callable, Dict, List, Optional

from ..config import config
from ..errors import PlacementUnresolved
from ..models import Block, BlockType, DropPayload, Position, ViewportState, create_block
from .coordinates import screen_to_canvas, viewport_center

# A seeder maps a dropped item to block fields (type plus overrides)
DropSeeder = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]

URL_PATTERN = re.compile(r"^https?://\S+$")


def _title(item: Dict[str, Any]) -> str:
    return item.get("title") or "Untitled"


def seed_block_type(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """A block type dragged from the toolbar."""
    try:
        block_type = BlockType(item.get("type"))
    except ValueError:
        return None
    return {"type": block_type}


def seed_brain_drop(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """The central brain tile dragged from the toolbar."""
    return {"type": BlockType.BRAIN}


def seed_knowledge(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """A knowledge/reference document becomes a brain block."""
    return {
        "type": BlockType.BRAIN,
        "title": _title(item),
        "content": item.get("description") or "",
    }


def seed_swipe(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """A saved swipe becomes an image when it has one, else a brain block."""
    image_url = item.get("image_url") or ""
    return {
        "type": BlockType.IMAGE if image_url else BlockType.BRAIN,
        "title": _title(item),
        "content": item.get("content") or item.get("description") or "",
        "file_url": image_url or None,
    }


def seed_media(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """A media asset becomes an image when it is one, else a brain block."""
    kind = item.get("kind") or item.get("asset_type")
    if kind == "image":
        return {
            "type": BlockType.IMAGE,
            "title": _title(item),
            "file_url": item.get("file_url") or item.get("thumbnail_url") or None,
        }
    return {
        "type": BlockType.BRAIN,
        "title": _title(item),
        "content": item.get("description") or "",
    }


def seed_template(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """A prompt template becomes a text block."""
    return {
        "type": BlockType.TEXT,
        "title": _title(item),
        "content": item.get("prompt_text") or "",
    }


def seed_offer(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """An offer becomes a brain block describing price and discount."""
    content = f"{item.get('description') or ''}\n\nPrice: {item.get('price') or 'N/A'}"
    if item.get("discount"):
        content += f"\nDiscount: {item['discount']}"
    return {
        "type": BlockType.BRAIN,
        "title": _title(item),
        "content": content,
    }


class PlacementResolver:
    """
    Resolves insertion requests into new blocks at canvas positions.
    """

    def __init__(self, rng: Optional[random.Random] = None, board_id: Optional[str] = None):
        """
        Initialize the resolver with the default drop seeders.

        Args:
            rng: Random source for toolbar placement
            board_id: Board assigned to created blocks
        """
        self.rng = rng or random.Random()
        self.board_id = board_id
        self._seeders: Dict[str, DropSeeder] = {}
        self._register_default_seeders()

    def _register_default_seeders(self):
        """Register the seeders for the known drop discriminators."""
        self.register_seeder("block-type", seed_block_type)
        self.register_seeder("brain-drop", seed_brain_drop)
        self.register_seeder("knowledge", seed_knowledge)
        self.register_seeder("reference-document", seed_knowledge)
        self.register_seeder("swipe", seed_swipe)
        self.register_seeder("asset", seed_media)
        self.register_seeder("media", seed_media)
        self.register_seeder("template", seed_template)
        self.register_seeder("offer", seed_offer)

    def register_seeder(self, kind: str, seeder: DropSeeder) -> None:
        """
        Register (or replace) the seeder for a drop discriminator.

        Args:
            kind: The discriminator carried by DropPayload.kind
            seeder: Function mapping the dropped item to block fields
        """
        self._seeders[kind] = seeder

    def list_drop_kinds(self) -> List[str]:
        """Get the discriminators this resolver understands."""
        return list(self._seeders.keys())

    def random_position(self) -> Position:
        """Pick a position inside the toolbar placement window."""
        low, high = config.placement_window
        return Position(
            x=low + self.rng.random() * (high - low),
            y=low + self.rng.random() * (high - low),
        )

    def resolve_toolbar(self, block_type: Any, position: Optional[Position] = None,
                        overrides: Optional[Dict[str, Any]] = None) -> Block:
        """
        Build a block for a toolbar insertion.

        Args:
            block_type: The block type to insert
            position: Explicit canvas position; randomized when omitted
            overrides: Field values replacing the type defaults

        Returns:
            The new block
        """
        return create_block(
            block_type,
            position if position is not None else self.random_position(),
            overrides,
            board_id=self.board_id,
        )

    def resolve_drop(self, payload: DropPayload, screen_point: Position,
                     viewport: ViewportState) -> Optional[Block]:
        """
        Build a block for a drag-and-drop insertion.

        Args:
            payload: The dropped payload
            screen_point: Pointer position in screen pixels
            viewport: Current pan/zoom state

        Returns:
            The new block, or None for unknown payloads or an unmounted canvas
        """
        seeder = self._seeders.get(payload.kind)
        if seeder is None:
            logging.info(f"Ignoring drop with unknown kind '{payload.kind}'")
            return None

        fields = seeder(payload.item)
        if fields is None:
            logging.info(f"Ignoring drop of '{payload.kind}' with unusable item")
            return None

        try:
            position = screen_to_canvas(screen_point, viewport)
        except PlacementUnresolved as e:
            logging.info(f"Dropping insertion: {e}")
            return None

        block_type = fields.pop("type")
        return create_block(block_type, position, fields, board_id=self.board_id)

    def resolve_paste(self, viewport: ViewportState, text: Optional[str] = None,
                      image_url: Optional[str] = None) -> Optional[Block]:
        """
        Build a block for pasted clipboard content at the viewport centre.

        Args:
            viewport: Current pan/zoom state, including the container size
            text: Pasted plain text
            image_url: URL of an already uploaded pasted image

        Returns:
            The new block, or None when there is nothing to paste or no viewport
        """
        if image_url:
            block_type = BlockType.IMAGE
            overrides: Dict[str, Any] = {"title": "Pasted Image", "file_url": image_url}
        elif text and URL_PATTERN.match(text.strip()):
            block_type = BlockType.URL
            overrides = {"title": "Pasted URL", "url": text.strip()}
        elif text:
            block_type = BlockType.TEXT
            overrides = {"title": "Pasted Text", "content": text}
        else:
            return None

        try:
            position = viewport_center(viewport)
        except PlacementUnresolved as e:
            logging.info(f"Dropping paste: {e}")
            return None

        return create_block(block_type, position, overrides, board_id=self.board_id)

    def resolve_creative(self, source: Block, content: str, content_type: str) -> Block:
        """
        Build a creative block seeded from a chat answer.

        The creative is placed to the right of the source block and the content
        lands in the creative field matching the content type.

        Args:
            source: The chat block the content came from
            content: The generated text
            content_type: Free-form kind of content ("Headline", "CTA", "Body copy", ...)

        Returns:
            The new creative block
        """
        lowered = content_type.lower()
        metadata: Dict[str, Any] = {"status": "draft"}

        if "headline" in lowered or "hook" in lowered:
            metadata["headline"] = content
        elif "cta" in lowered or "call to action" in lowered:
            metadata["cta"] = content
        else:
            metadata["primary_text"] = content

        position = Position(x=source.position.x + config.creative_offset_x, y=source.position.y)
        return create_block(
            BlockType.CREATIVE,
            position,
            {"title": f"Creative - {content_type}", "metadata": metadata},
            board_id=self.board_id,
        )

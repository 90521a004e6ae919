"""
Context formatter registry for canvasgraph.

This module defines, per block type, how a block is labelled and what body it
contributes to an AI chat's context. Adding a block type means registering one
formatter here; the aggregator itself never branches on type names.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..config import config
from ..models import Block, BlockType


def title_name(block: Block) -> str:
    """Name a segment after the block title."""
    return block.display_title


def url_name(block: Block) -> str:
    """Name a segment after the block's URL, falling back to its title."""
    return block.url or block.display_title


def content_body(block: Block) -> str:
    """Use the block's text content as the segment body."""
    return block.content or ""


def image_placeholder_body(block: Block) -> str:
    """Images never inline their URL; they get a fixed placeholder."""
    return config.image_placeholder


def image_reference(block: Block) -> Optional[str]:
    """The image URL handed to the model separately from the text."""
    return block.file_url or block.url or None


@dataclass
class ContextFormatter:
    """
    How one block type contributes to aggregated context.
    """
    block_type: BlockType
    label: str
    name_of: Callable[[Block], str] = title_name
    body_of: Callable[[Block], str] = content_body
    image_of: Optional[Callable[[Block], Optional[str]]] = None
    skip_empty: bool = True
    expand_members: bool = False


class ContextFormatterRegistry:
    """
    Registry of context formatters keyed by block type.
    """

    def __init__(self):
        """Initialize the registry with the default formatters."""
        self._formatters: Dict[BlockType, ContextFormatter] = {}
        self._register_default_formatters()

    def _register_default_formatters(self):
        """Register the formatters for the built-in block types."""
        for block_type in (BlockType.TEXT, BlockType.DOCUMENT, BlockType.VIDEO,
                           BlockType.BRAIN, BlockType.CHAT, BlockType.CREATIVE):
            self.register_formatter(ContextFormatter(
                block_type=block_type,
                label=block_type.value.upper(),
            ))

        self.register_formatter(ContextFormatter(
            block_type=BlockType.URL,
            label="URL",
            name_of=url_name,
        ))

        # Images contribute a placeholder segment even without text content
        self.register_formatter(ContextFormatter(
            block_type=BlockType.IMAGE,
            label="IMAGE",
            body_of=image_placeholder_body,
            image_of=image_reference,
            skip_empty=False,
        ))

        # Groups flow their members instead of themselves
        self.register_formatter(ContextFormatter(
            block_type=BlockType.GROUP,
            label="GROUP",
            expand_members=True,
        ))

    def register_formatter(self, formatter: ContextFormatter) -> None:
        """
        Register (or replace) the formatter for a block type.

        Args:
            formatter: The formatter to register
        """
        self._formatters[formatter.block_type] = formatter

    def get_formatter(self, block_type: BlockType) -> ContextFormatter:
        """
        Get the formatter for a block type.

        Unregistered types get a plain content formatter labelled with the
        upper-cased type name.

        Args:
            block_type: The block type

        Returns:
            The matching formatter
        """
        formatter = self._formatters.get(block_type)
        if formatter is None:
            formatter = ContextFormatter(block_type=block_type, label=block_type.value.upper())
        return formatter

    def list_types(self) -> List[BlockType]:
        """
        Get the block types with a registered formatter.

        Returns:
            List of block types
        """
        return list(self._formatters.keys())


# Global formatter registry instance
formatter_registry = ContextFormatterRegistry()

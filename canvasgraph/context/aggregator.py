"""
Context aggregation for canvasgraph.

Turns "what is connected to this chat block" into a prompt-ready payload: a
text context built from per-block segments and a separate list of image
references. Aggregation is a pure function of (target, blocks, edges).
"""

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..config import config
from ..models import AggregatedContext, Block, ConnectedContext, Edge
from .formatters import ContextFormatterRegistry, formatter_registry


def get_connected_blocks(target_id: str, blocks: Iterable[Block], edges: Iterable[Edge]) -> List[Block]:
    """
    Find the one-hop incoming neighbours of a block.

    Args:
        target_id: The block receiving content (usually a chat block)
        blocks: Current blocks
        edges: Current edges, in creation order

    Returns:
        Source blocks in edge-creation order, each at most once
    """
    by_id = {block.id: block for block in blocks}
    connected: List[Block] = []
    seen: Set[str] = set()

    for edge in edges:
        if edge.target_block_id != target_id:
            continue
        source = by_id.get(edge.source_block_id)
        if source is None or source.id in seen:
            continue
        seen.add(source.id)
        connected.append(source)

    return connected


def group_members(group: Block, blocks: Sequence[Block]) -> List[Block]:
    """
    Resolve the members of a group block.

    Members listed in metadata["member_ids"] come first, in listed order,
    followed by blocks pointing at the group through group_id.

    Args:
        group: The group block
        blocks: Current blocks

    Returns:
        Member blocks; ids that no longer exist are skipped
    """
    by_id = {block.id: block for block in blocks}
    member_ids: List[str] = list(group.metadata.get("member_ids") or [])

    for block in blocks:
        if block.group_id == group.id and block.id not in member_ids:
            member_ids.append(block.id)

    return [by_id[member_id] for member_id in member_ids
            if member_id in by_id and member_id != group.id]


class ContextAggregator:
    """
    Builds AggregatedContext payloads using a formatter registry.
    """

    def __init__(self, registry: Optional[ContextFormatterRegistry] = None,
                 separator: Optional[str] = None):
        """
        Initialize the aggregator.

        Args:
            registry: Formatter registry; the global one when omitted
            separator: Segment separator; config context.separator when omitted
        """
        self.registry = registry or formatter_registry
        self._separator = separator

    @property
    def separator(self) -> str:
        return self._separator if self._separator is not None else config.context_separator

    def aggregate(self, target_id: str, blocks: Sequence[Block], edges: Sequence[Edge]) -> AggregatedContext:
        """
        Aggregate the context flowing into a block.

        Args:
            target_id: The block asking for context
            blocks: Current blocks
            edges: Current edges, in creation order

        Returns:
            The aggregated context; empty when nothing is connected
        """
        blocks = list(blocks)
        sources = get_connected_blocks(target_id, blocks, edges)

        segments: List[str] = []
        image_urls: List[str] = []
        items: List[ConnectedContext] = []
        seen: Set[str] = {target_id}

        for block in self._flatten(sources, blocks, seen):
            rendered = self._render(block)
            if rendered is None:
                continue
            segment, item = rendered
            segments.append(segment)
            items.append(item)
            if item.image_url:
                image_urls.append(item.image_url)

        return AggregatedContext(
            text_context=self.separator.join(segments),
            image_urls=image_urls,
            items=items,
        )

    def _flatten(self, sources: List[Block], blocks: List[Block], seen: Set[str]) -> List[Block]:
        """Expand groups into their members, keeping each block once."""
        flattened: List[Block] = []
        for block in sources:
            if block.id in seen:
                continue
            seen.add(block.id)
            if self.registry.get_formatter(block.type).expand_members:
                flattened.extend(self._flatten(group_members(block, blocks), blocks, seen))
            else:
                flattened.append(block)
        return flattened

    def _render(self, block: Block) -> Optional[Tuple[str, ConnectedContext]]:
        """Format one block into its segment text and structured item."""
        formatter = self.registry.get_formatter(block.type)
        body = formatter.body_of(block)
        if formatter.skip_empty and not body:
            return None

        name = formatter.name_of(block)
        instruction = f"\n[Use as: {block.instruction_prompt}]" if block.instruction_prompt else ""
        image_url = formatter.image_of(block) if formatter.image_of else None

        segment = f"[{formatter.label}: {name}]{instruction}\n{body}"
        item = ConnectedContext(
            type=block.type,
            label=formatter.label,
            title=name,
            content=body,
            image_url=image_url,
            instruction_prompt=block.instruction_prompt or None,
        )
        return segment, item


# Default aggregator used by the module-level helper
default_aggregator = ContextAggregator()


def aggregate(target_id: str, blocks: Sequence[Block], edges: Sequence[Edge]) -> AggregatedContext:
    """Aggregate context with the default formatter registry."""
    return default_aggregator.aggregate(target_id, blocks, edges)


def format_context_for_ai(items: Sequence[ConnectedContext]) -> str:
    """
    Format aggregated items as the context block of an AI system prompt.

    Args:
        items: Structured items from AggregatedContext.items

    Returns:
        The formatted prompt section, or "" when there is nothing to send
    """
    if not items:
        return ""

    sections: List[str] = [
        "=== CONNECTED CONTEXT ===",
        "The following content is connected to this chat and should inform your responses:",
        "",
    ]

    for item in items:
        sections.append(f"--- {item.label} - {item.title} ---")
        if item.instruction_prompt:
            sections.append(f"[Use as: {item.instruction_prompt}]")
        if item.image_url:
            sections.append("(Reference image provided)")
        elif item.content:
            sections.append(item.content)
        sections.append("")

    sections.append("=== END CONTEXT ===")
    return "\n".join(sections)


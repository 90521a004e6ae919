"""
Graph diffing for canvasgraph.

Computes what the store has to do to match the local graph, used when the
local graph was replaced wholesale by undo/redo.
"""

from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field

from ..models import Block, Edge, PositionUpdate

# Block attributes persisted through update_block (position goes through update_positions)
DIFF_FIELDS = (
    "title", "content", "url", "file_url", "file_path", "color",
    "instruction_prompt", "group_id", "parsing_status", "metadata", "size",
)


class GraphDiff(BaseModel):
    """
    Store operations turning the remote graph into the local one.
    """

    blocks_to_create: List[Block] = Field(default_factory=list)
    block_updates: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    position_updates: List[PositionUpdate] = Field(default_factory=list)
    edges_to_create: List[Edge] = Field(default_factory=list)
    edges_to_delete: List[str] = Field(default_factory=list)
    blocks_to_delete: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.blocks_to_create or self.block_updates or self.position_updates
                    or self.edges_to_create or self.edges_to_delete or self.blocks_to_delete)


def compute_graph_diff(remote_blocks: Iterable[Block], remote_edges: Iterable[Edge],
                       local_blocks: Iterable[Block], local_edges: Iterable[Edge]) -> GraphDiff:
    """
    Compare the last acknowledged remote graph with the local graph.

    Edges touching a block that is about to be deleted are left to the store's
    cascade and are not listed in edges_to_delete.

    Args:
        remote_blocks: Blocks as the store last acknowledged them
        remote_edges: Edges as the store last acknowledged them
        local_blocks: Current local blocks
        local_edges: Current local edges

    Returns:
        The diff; is_empty when the two graphs already agree
    """
    remote_by_id = {block.id: block for block in remote_blocks}
    local_by_id = {block.id: block for block in local_blocks}
    remote_edge_by_id = {edge.id: edge for edge in remote_edges}
    local_edge_ids = set()

    diff = GraphDiff()

    for block_id, local in local_by_id.items():
        remote = remote_by_id.get(block_id)
        if remote is None:
            diff.blocks_to_create.append(local)
            continue

        changed = {
            name: getattr(local, name)
            for name in DIFF_FIELDS
            if getattr(local, name) != getattr(remote, name)
        }
        if changed:
            diff.block_updates[block_id] = changed
        if local.position != remote.position:
            diff.position_updates.append(
                PositionUpdate(id=block_id, x=local.position.x, y=local.position.y)
            )

    diff.blocks_to_delete = [block_id for block_id in remote_by_id if block_id not in local_by_id]
    deleted = set(diff.blocks_to_delete)

    for edge in local_edges:
        local_edge_ids.add(edge.id)
        if edge.id not in remote_edge_by_id:
            diff.edges_to_create.append(edge)

    diff.edges_to_delete = [
        edge_id for edge_id, edge in remote_edge_by_id.items()
        if edge_id not in local_edge_ids
        and edge.source_block_id not in deleted
        and edge.target_block_id not in deleted
    ]

    return diff

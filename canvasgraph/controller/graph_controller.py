"""
Graph controller for canvasgraph.

The controller owns the in-memory graph of one open board. It applies edits
optimistically, persists them through a BoardStore, rolls back exactly the
affected entities when the store rejects a call, records undo snapshots for
structural changes and notifies subscribers after every committed mutation.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..context import ContextAggregator, get_connected_blocks
from ..errors import InvalidEdge, PersistenceFailure, StoreError
from ..history import HistoryManager
from ..models import (
    AggregatedContext,
    Block,
    BlockType,
    DropPayload,
    Edge,
    GraphChange,
    GraphSnapshot,
    Position,
    PositionUpdate,
    ViewportState,
    create_edge,
    next_parsing_status,
)
from ..placement import PlacementResolver
from ..store import BoardStore
from .diff import compute_graph_diff

Subscriber = Callable[[GraphChange], None]

# Fields update_block accepts; position and parsing status have their own operations
EDITABLE_FIELDS = (
    "title", "content", "url", "file_url", "file_path", "color",
    "instruction_prompt", "group_id", "metadata", "size",
)


class GraphController:
    """
    Façade coordinating the graph model, history, aggregation and persistence.
    """

    def __init__(self, store: BoardStore, board_id: str,
                 history: Optional[HistoryManager] = None,
                 resolver: Optional[PlacementResolver] = None,
                 aggregator: Optional[ContextAggregator] = None):
        """
        Initialize the controller for an empty board.

        Call load() to pull an existing board from the store.

        Args:
            store: The persistence collaborator
            board_id: The board this controller owns
            history: Undo/redo stack (a fresh one when omitted)
            resolver: Placement resolver (a fresh one when omitted)
            aggregator: Context aggregator (a fresh one when omitted)
        """
        self.store = store
        self.board_id = board_id
        self.history = history if history is not None else HistoryManager()
        self.resolver = resolver or PlacementResolver()
        self.resolver.board_id = board_id
        self.aggregator = aggregator or ContextAggregator()

        self._blocks: List[Block] = []
        self._edges: List[Edge] = []
        self._remote_blocks: Dict[str, Block] = {}
        self._remote_edges: Dict[str, Edge] = {}
        self._pending_updates: Dict[str, Dict[str, Any]] = {}
        self._subscribers: List[Subscriber] = []
        self._needs_reconcile = False

        self.history.clear()
        self.history.push_state(self._blocks, self._edges)

    # State access

    @property
    def blocks(self) -> List[Block]:
        return list(self._blocks)

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def needs_reconcile(self) -> bool:
        """True while the store lags behind the committed graph (after undo/redo or a partial write)."""
        return self._needs_reconcile

    @property
    def pending_updates(self) -> Dict[str, Dict[str, Any]]:
        """Staged field edits waiting for flush_pending_updates()."""
        return {block_id: dict(fields) for block_id, fields in self._pending_updates.items()}

    def get_block(self, block_id: str) -> Optional[Block]:
        for block in self._blocks:
            if block.id == block_id:
                return block
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    def snapshot(self) -> GraphSnapshot:
        """Get the current local graph as a snapshot."""
        return GraphSnapshot(blocks=tuple(self._blocks), edges=tuple(self._edges))

    # Observers

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a structural-change subscriber.

        Args:
            callback: Called with a GraphChange after each committed mutation

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    on_structural_change = subscribe

    def _emit(self, kind: str, block_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> None:
        change = GraphChange(kind=kind, block_ids=list(block_ids), edge_ids=list(edge_ids))
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as e:
                logging.error(f"Structural change subscriber failed on '{kind}': {e}")

    # Loading

    def load(self) -> GraphSnapshot:
        """
        Fetch the board from the store and replace the local graph.

        History restarts from the loaded state and any divergence left by
        undo/redo is discarded.

        Returns:
            The loaded snapshot

        Raises:
            PersistenceFailure: If the store cannot be read (local state is kept)
        """
        try:
            blocks = self.store.list_blocks(self.board_id)
            edges = self.store.list_edges(self.board_id)
        except StoreError as e:
            raise self._failure("load board", [self.board_id], e)

        self._blocks = list(blocks)
        self._edges = list(edges)
        self._remote_blocks = {block.id: block for block in blocks}
        self._remote_edges = {edge.id: edge for edge in edges}
        self._pending_updates = {}
        self._needs_reconcile = False

        self.history.clear()
        self.history.push_state(self._blocks, self._edges)

        logging.info(f"Loaded board {self.board_id}: {len(blocks)} blocks, {len(edges)} edges")
        self._emit("load", [block.id for block in blocks], [edge.id for edge in edges])
        return self.snapshot()

    refresh = load

    # Block creation

    def add_block(self, block_type: Any, position: Optional[Position] = None,
                  overrides: Optional[Dict[str, Any]] = None) -> Block:
        """
        Create a block from a toolbar action.

        Args:
            block_type: The block type
            position: Canvas position; randomized inside the placement window when omitted
            overrides: Field values replacing the type defaults

        Returns:
            The stored block

        Raises:
            PersistenceFailure: If the store rejects the block (it is removed locally)
        """
        block = self.resolver.resolve_toolbar(block_type, position, overrides)
        return self._admit_block(block)

    def add_dropped_block(self, payload: DropPayload, screen_point: Position,
                          viewport: ViewportState) -> Optional[Block]:
        """
        Create a block from a drag-and-drop payload.

        Returns:
            The stored block, or None when the drop could not be placed
        """
        block = self.resolver.resolve_drop(payload, screen_point, viewport)
        if block is None:
            return None
        return self._admit_block(block)

    def add_pasted_block(self, viewport: ViewportState, text: Optional[str] = None,
                         image_url: Optional[str] = None) -> Optional[Block]:
        """
        Create a block from pasted clipboard content at the viewport centre.

        Returns:
            The stored block, or None when nothing could be pasted
        """
        block = self.resolver.resolve_paste(viewport, text=text, image_url=image_url)
        if block is None:
            return None
        return self._admit_block(block)

    def push_to_creative(self, source_id: str, content: str, content_type: str) -> Optional[Block]:
        """
        Create a creative block next to a chat block from one of its answers.

        Returns:
            The stored creative, or None when the source block does not exist
        """
        source = self.get_block(source_id)
        if source is None:
            logging.warning(f"Cannot push to creative: unknown block {source_id}")
            return None
        return self._admit_block(self.resolver.resolve_creative(source, content, content_type))

    def _admit_block(self, block: Block) -> Block:
        self._before_mutation()

        self._blocks.append(block)
        try:
            stored = self.store.create_block(self.board_id, block)
        except StoreError as e:
            self._blocks = [b for b in self._blocks if b.id != block.id]
            raise self._failure("create block", [block.id], e)

        self._replace_block(block.id, stored)
        self._remote_blocks[stored.id] = stored
        self._checkpoint()

        logging.info(f"Added {stored.type.value} block {stored.id} to board {self.board_id}")
        self._emit("block_added", [stored.id])
        return stored

    # Connections

    def connect(self, source_id: str, target_id: str) -> Optional[Edge]:
        """
        Connect two blocks so the source's content flows into the target.

        Self-loops, duplicates and unknown blocks are rejected without
        contacting the store.

        Returns:
            The stored edge, or None when the connection was rejected

        Raises:
            PersistenceFailure: If the store rejects the edge (it is removed locally)
        """
        try:
            for block_id in (source_id, target_id):
                if self.get_block(block_id) is None:
                    raise InvalidEdge(source_id, target_id, f"unknown block {block_id}")
            edge = create_edge(source_id, target_id, self._edges, board_id=self.board_id)
        except InvalidEdge as e:
            logging.info(f"Connection rejected: {e}")
            return None

        self._before_mutation()

        self._edges.append(edge)
        try:
            stored = self.store.create_edge(self.board_id, source_id, target_id, edge.id)
        except StoreError as e:
            self._edges = [existing for existing in self._edges if existing.id != edge.id]
            raise self._failure("create connection", [edge.id], e)

        self._edges = [stored if existing.id == edge.id else existing for existing in self._edges]
        self._remote_edges[stored.id] = stored
        self._checkpoint()

        logging.info(f"Connected {source_id} -> {target_id}")
        self._emit("edge_added", [source_id, target_id], [stored.id])
        return stored

    # Positions

    def move_position(self, block_id: str, position: Position) -> None:
        """
        Move a block locally during a drag. No persistence, no history.
        """
        index = self._index_of(block_id)
        if index is None:
            logging.debug(f"Ignoring move of unknown block {block_id}")
            return
        self._blocks[index] = self._blocks[index].model_copy(update={"position": position})

    def commit_position(self, block_id: str, position: Optional[Position] = None) -> bool:
        """
        Commit the end of a single-block drag.

        Args:
            block_id: The dragged block
            position: Final position; the current local position when omitted

        Returns:
            True if anything was persisted
        """
        return self.commit_positions({block_id: position})

    def commit_positions(self, moves: Mapping[str, Optional[Position]]) -> bool:
        """
        Commit the end of a drag of one or more blocks.

        Blocks whose final position equals the one in the current history
        snapshot are skipped. The rest are persisted in one batch and recorded
        as one history entry.

        Args:
            moves: Block id mapped to its final position (None keeps the local one)

        Returns:
            True if anything was persisted

        Raises:
            PersistenceFailure: If the store rejects the batch (positions are restored)
        """
        self._before_mutation()

        current = self.history.current()
        recorded = current.block_map() if current else {}
        changed: List[Tuple[str, Optional[Position], Position]] = []

        for block_id, position in moves.items():
            index = self._index_of(block_id)
            if index is None:
                continue
            block = self._blocks[index]
            final = position if position is not None else block.position
            if final != block.position:
                self._blocks[index] = block.model_copy(update={"position": final})

            reference = recorded.get(block_id) or self._remote_blocks.get(block_id)
            previous = reference.position if reference else None
            if previous != final:
                changed.append((block_id, previous, final))

        if not changed:
            return False

        batch = [PositionUpdate(id=block_id, x=final.x, y=final.y) for block_id, _, final in changed]
        try:
            self.store.update_positions(batch)
        except StoreError as e:
            for block_id, previous, _ in changed:
                if previous is not None:
                    self.move_position(block_id, previous)
            if e.applied:
                # The store kept part of the batch; the next mutation puts it back
                self._acknowledge_positions([update for update in batch if update.id in e.applied])
                self._needs_reconcile = True
            raise self._failure("save positions", [block_id for block_id, _, _ in changed], e)

        self._acknowledge_positions(batch)
        self._checkpoint()

        moved = [block_id for block_id, _, _ in changed]
        logging.debug(f"Committed positions for {len(moved)} block(s)")
        self._emit("positions_committed", moved)
        return True

    # Deletion

    def delete_block(self, block_id: str) -> bool:
        """
        Delete a block and the edges touching it.

        Returns:
            True if the block existed and was deleted

        Raises:
            PersistenceFailure: If the store rejects the deletion (the block is restored)
        """
        return bool(self.delete_blocks([block_id]))

    def delete_blocks(self, block_ids: Iterable[str]) -> List[str]:
        """
        Delete several blocks, e.g. the current selection.

        Each block is persisted separately; a failure restores only that block
        and stops the run. Blocks deleted before the failure stay deleted and
        are recorded as one history entry.

        Returns:
            Ids of the deleted blocks
        """
        targets = [block_id for block_id in dict.fromkeys(block_ids) if self.get_block(block_id)]
        if not targets:
            return []

        self._before_mutation()

        deleted: List[str] = []
        removed_edges: List[str] = []
        try:
            for block_id in targets:
                removed_edges.extend(self._delete_one(block_id))
                deleted.append(block_id)
        finally:
            if deleted:
                self._checkpoint()
                logging.info(f"Deleted {len(deleted)} block(s) from board {self.board_id}")
                self._emit("blocks_deleted", deleted, removed_edges)

        return deleted

    def _delete_one(self, block_id: str) -> List[str]:
        index = self._index_of(block_id)
        block = self._blocks.pop(index)

        removed = [(i, edge) for i, edge in enumerate(self._edges)
                   if block_id in (edge.source_block_id, edge.target_block_id)]
        removed_ids = {edge.id for _, edge in removed}
        self._edges = [edge for edge in self._edges if edge.id not in removed_ids]

        try:
            self.store.delete_block(block_id)
        except StoreError as e:
            self._blocks.insert(index, block)
            for i, edge in removed:
                self._edges.insert(i, edge)
            raise self._failure("delete block", [block_id], e)

        self._remote_blocks.pop(block_id, None)
        for edge_id in [edge.id for edge in self._remote_edges.values()
                        if block_id in (edge.source_block_id, edge.target_block_id)]:
            del self._remote_edges[edge_id]
        self._pending_updates.pop(block_id, None)

        return [edge.id for _, edge in removed]

    def delete_edge(self, edge_id: str) -> bool:
        """
        Delete a connection.

        Returns:
            True if the edge existed and was deleted

        Raises:
            PersistenceFailure: If the store rejects the deletion (the edge is restored)
        """
        index = next((i for i, edge in enumerate(self._edges) if edge.id == edge_id), None)
        if index is None:
            return False

        self._before_mutation()

        edge = self._edges.pop(index)
        try:
            self.store.delete_edge(edge_id)
        except StoreError as e:
            self._edges.insert(index, edge)
            raise self._failure("delete connection", [edge_id], e)

        self._remote_edges.pop(edge_id, None)
        self._checkpoint()

        logging.info(f"Removed connection {edge.source_block_id} -> {edge.target_block_id}")
        self._emit("edge_deleted", [edge.source_block_id, edge.target_block_id], [edge_id])
        return True

    # Content edits

    def update_block(self, block_id: str, persist: bool = True, **fields: Any) -> Block:
        """
        Edit a block's content fields. Edits are not recorded in history.

        Args:
            block_id: The block to edit
            persist: False stages the edit until flush_pending_updates()
            **fields: New values (title, content, instruction_prompt, size, ...)

        Returns:
            The updated local block

        Raises:
            KeyError: If the block does not exist
            ValueError: If a field cannot be edited this way (id, type, position, ...)
            PersistenceFailure: If the store rejects the edit (the block is restored)
        """
        invalid = [name for name in fields if name not in EDITABLE_FIELDS]
        if invalid:
            raise ValueError(f"Cannot edit block fields: {', '.join(invalid)}")
        if self.get_block(block_id) is None:
            raise KeyError(f"Unknown block {block_id}")

        if not persist:
            updated = self._set_fields(block_id, fields)
            self._pending_updates.setdefault(block_id, {}).update(fields)
            return updated

        self._before_mutation()
        updated = self._persist_fields(block_id, fields)
        self._emit("block_updated", [block_id])
        return updated

    def flush_pending_updates(self) -> int:
        """
        Persist staged edits, one update call per block.

        Returns:
            Number of blocks written

        Raises:
            PersistenceFailure: On the first rejected write; that block's staged
                fields are reverted to their stored values
        """
        if not self._pending_updates:
            return 0

        self._before_mutation()

        flushed: List[str] = []
        try:
            for block_id in list(self._pending_updates):
                fields = self._pending_updates[block_id]
                try:
                    self.store.update_block(block_id, fields)
                except StoreError as e:
                    remote = self._remote_blocks.get(block_id)
                    if remote is not None:
                        self._set_fields(block_id, {name: getattr(remote, name) for name in fields})
                    del self._pending_updates[block_id]
                    raise self._failure("save block", [block_id], e)

                self._update_remote(block_id, fields)
                del self._pending_updates[block_id]
                flushed.append(block_id)
        finally:
            if flushed:
                self._emit("block_updated", flushed)

        return len(flushed)

    def set_parsing_status(self, block_id: str, status: Any) -> Block:
        """
        Move a document/url block through its parsing state machine.

        Raises:
            KeyError: If the block does not exist
            InvalidParsingTransition: If the move is not allowed
            PersistenceFailure: If the store rejects the change
        """
        block = self.get_block(block_id)
        if block is None:
            raise KeyError(f"Unknown block {block_id}")

        status = next_parsing_status(block.parsing_status, status)
        if status == block.parsing_status:
            return block

        self._before_mutation()
        updated = self._persist_fields(block_id, {"parsing_status": status})
        self._emit("block_updated", [block_id])
        return updated

    # Groups

    def add_to_group(self, block_id: str, group_id: str) -> bool:
        """
        Add a block to a group's members.

        Returns:
            True if membership changed
        """
        group = self.get_block(group_id)
        if group is None or group.type != BlockType.GROUP:
            logging.warning(f"Cannot add to group: {group_id} is not a group block")
            return False
        if block_id == group_id or self.get_block(block_id) is None:
            return False

        member_ids = list(group.metadata.get("member_ids") or [])
        if block_id in member_ids:
            return False

        self._before_mutation()
        self._persist_fields(group_id, {"metadata": {**group.metadata, "member_ids": member_ids + [block_id]}})
        self._checkpoint()
        self._emit("group_changed", [group_id, block_id])
        return True

    def remove_from_group(self, block_id: str, group_id: str) -> bool:
        """
        Remove a block from a group's members.

        Returns:
            True if membership changed
        """
        group = self.get_block(group_id)
        block = self.get_block(block_id)
        if group is None or group.type != BlockType.GROUP or block is None:
            return False

        member_ids = list(group.metadata.get("member_ids") or [])
        listed = block_id in member_ids
        linked = block.group_id == group_id
        if not listed and not linked:
            return False

        self._before_mutation()

        written: List[str] = []
        try:
            if listed:
                member_ids.remove(block_id)
                self._persist_fields(group_id, {"metadata": {**group.metadata, "member_ids": member_ids}})
                written.append(group_id)
            if linked:
                self._persist_fields(block_id, {"group_id": None})
                written.append(block_id)
        finally:
            if written:
                self._checkpoint()
                self._emit("group_changed", [group_id, block_id])
        return True

    # History

    def undo(self) -> bool:
        """
        Restore the previous snapshot.

        The store is not touched; it is brought up to date by the next
        mutating call (or discarded by refresh()).

        Returns:
            False when there is nothing to undo
        """
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        """
        Re-apply the next snapshot.

        Returns:
            False when there is nothing to redo
        """
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def _restore(self, snapshot: GraphSnapshot) -> None:
        self._blocks = [block.model_copy(deep=True) for block in snapshot.blocks]
        self._edges = [edge.model_copy(deep=True) for edge in snapshot.edges]
        self._pending_updates = {}
        self._needs_reconcile = True
        self._emit("history", [block.id for block in self._blocks], [edge.id for edge in self._edges])

    def reconcile(self) -> bool:
        """
        Write the difference between the store and the committed graph.

        The committed graph is the snapshot at the history cursor, so an
        uncommitted drag or a staged edit is never written here.

        Returns:
            True if anything was written

        Raises:
            PersistenceFailure: If a write fails; reconciliation stays pending
        """
        if not self._needs_reconcile:
            return False

        committed = self.history.current() or self.snapshot()
        diff = compute_graph_diff(self._remote_blocks.values(), self._remote_edges.values(),
                                  committed.blocks, committed.edges)
        if diff.is_empty:
            self._needs_reconcile = False
            return False

        try:
            for block in diff.blocks_to_create:
                self._remote_blocks[block.id] = self.store.create_block(self.board_id, block)
            for block_id, fields in diff.block_updates.items():
                self.store.update_block(block_id, fields)
                self._update_remote(block_id, fields)
            if diff.position_updates:
                try:
                    self.store.update_positions(diff.position_updates)
                except StoreError as e:
                    self._acknowledge_positions(
                        [update for update in diff.position_updates if update.id in e.applied])
                    raise
                self._acknowledge_positions(diff.position_updates)
            for edge in diff.edges_to_create:
                self._remote_edges[edge.id] = self.store.create_edge(
                    self.board_id, edge.source_block_id, edge.target_block_id, edge.id)
            for edge_id in diff.edges_to_delete:
                self.store.delete_edge(edge_id)
                self._remote_edges.pop(edge_id, None)
            for block_id in diff.blocks_to_delete:
                self.store.delete_block(block_id)
                self._remote_blocks.pop(block_id, None)
                for edge_id in [edge.id for edge in self._remote_edges.values()
                                if block_id in (edge.source_block_id, edge.target_block_id)]:
                    del self._remote_edges[edge_id]
        except StoreError as e:
            raise self._failure("sync board", [self.board_id], e)

        self._needs_reconcile = False
        logging.info(
            f"Reconciled board {self.board_id}: +{len(diff.blocks_to_create)}/-{len(diff.blocks_to_delete)} blocks, "
            f"+{len(diff.edges_to_create)}/-{len(diff.edges_to_delete)} edges, "
            f"{len(diff.block_updates)} updates, {len(diff.position_updates)} moves"
        )
        return True

    # Context

    def get_connected_blocks(self, target_id: str) -> List[Block]:
        """One-hop incoming neighbours of a block, in edge-creation order."""
        return get_connected_blocks(target_id, self._blocks, self._edges)

    def aggregate(self, target_id: str) -> AggregatedContext:
        """Aggregate the context flowing into a block."""
        return self.aggregator.aggregate(target_id, self._blocks, self._edges)

    def chat_contexts(self) -> Dict[str, AggregatedContext]:
        """Aggregate the context of every chat block on the board."""
        return {
            block.id: self.aggregate(block.id)
            for block in self._blocks
            if block.type == BlockType.CHAT
        }

    # Internals

    def _before_mutation(self) -> None:
        if self._needs_reconcile:
            self.reconcile()

    def _checkpoint(self) -> None:
        self.history.push_state(self._blocks, self._edges)

    def _index_of(self, block_id: str) -> Optional[int]:
        for index, block in enumerate(self._blocks):
            if block.id == block_id:
                return index
        return None

    def _replace_block(self, block_id: str, block: Block) -> None:
        index = self._index_of(block_id)
        if index is not None:
            self._blocks[index] = block

    def _set_fields(self, block_id: str, fields: Dict[str, Any]) -> Block:
        index = self._index_of(block_id)
        current = self._blocks[index]
        updated = Block.model_validate({**current.model_dump(), **fields})
        self._blocks[index] = updated
        return updated

    def _persist_fields(self, block_id: str, fields: Dict[str, Any]) -> Block:
        previous = self.get_block(block_id)
        updated = self._set_fields(block_id, fields)
        try:
            self.store.update_block(block_id, fields)
        except StoreError as e:
            self._replace_block(block_id, previous)
            raise self._failure("save block", [block_id], e)

        self._update_remote(block_id, fields)
        return updated

    def _acknowledge_positions(self, updates: Iterable[PositionUpdate]) -> None:
        for update in updates:
            remote = self._remote_blocks.get(update.id)
            if remote is not None:
                self._remote_blocks[update.id] = remote.model_copy(
                    update={"position": Position(x=update.x, y=update.y)})

    def _update_remote(self, block_id: str, fields: Dict[str, Any]) -> None:
        remote = self._remote_blocks.get(block_id)
        if remote is not None:
            self._remote_blocks[block_id] = Block.model_validate({**remote.model_dump(), **fields})

    def _failure(self, operation: str, entity_ids: List[str], cause: Exception) -> PersistenceFailure:
        logging.error(f"Failed to {operation} on board {self.board_id}: {cause}")
        return PersistenceFailure(operation, entity_ids, cause)

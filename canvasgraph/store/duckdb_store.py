"""
DuckDB board store for canvasgraph.

This module persists boards to a local DuckDB database file (or an in-memory
database) using the same canvas_blocks/canvas_edges layout as the hosted
backend.
"""

import duckdb
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..errors import StoreError
from ..models import Block, Edge, PositionUpdate
from ..models.blocks import block_fields_to_row, new_id
from .base import BoardStore

BLOCK_COLUMNS = [
    "id", "agent_board_id", "type", "title", "content", "url", "file_path",
    "file_url", "position_x", "position_y", "width", "height", "color",
    "instruction_prompt", "group_id", "parsing_status", "metadata",
    "created_at", "updated_at",
]

EDGE_COLUMNS = [
    "id", "agent_board_id", "source_block_id", "target_block_id",
    "edge_type", "color", "created_at",
]


class DuckDBBoardStore(BoardStore):
    """
    Board store backed by DuckDB.
    """

    def __init__(self, db_path: str = "canvas.db"):
        """
        Initialize the store.

        Args:
            db_path: Path to the DuckDB database file, or ":memory:"
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        conn = self._require_connection()

        # Insertion order is kept explicitly; created_at can tie
        conn.execute("CREATE SEQUENCE IF NOT EXISTS canvas_seq;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS canvas_blocks (
                seq BIGINT DEFAULT nextval('canvas_seq'),
                id VARCHAR PRIMARY KEY,
                agent_board_id VARCHAR,
                type VARCHAR NOT NULL,
                title VARCHAR,
                content VARCHAR,
                url VARCHAR,
                file_path VARCHAR,
                file_url VARCHAR,
                position_x DOUBLE DEFAULT 0,
                position_y DOUBLE DEFAULT 0,
                width DOUBLE,
                height DOUBLE,
                color VARCHAR,
                instruction_prompt VARCHAR,
                group_id VARCHAR,
                parsing_status VARCHAR DEFAULT 'none',
                metadata VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS canvas_edges (
                seq BIGINT DEFAULT nextval('canvas_seq'),
                id VARCHAR PRIMARY KEY,
                agent_board_id VARCHAR,
                source_block_id VARCHAR NOT NULL,
                target_block_id VARCHAR NOT NULL,
                edge_type VARCHAR DEFAULT 'default',
                color VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def list_blocks(self, board_id: str) -> List[Block]:
        rows = self._fetch(
            f"SELECT {', '.join(BLOCK_COLUMNS)} FROM canvas_blocks "
            "WHERE agent_board_id = ? ORDER BY seq",
            [board_id],
        )
        return [Block.from_row(dict(zip(BLOCK_COLUMNS, row))) for row in rows]

    def list_edges(self, board_id: str) -> List[Edge]:
        rows = self._fetch(
            f"SELECT {', '.join(EDGE_COLUMNS)} FROM canvas_edges "
            "WHERE agent_board_id = ? ORDER BY seq",
            [board_id],
        )
        return [Edge.from_row(dict(zip(EDGE_COLUMNS, row))) for row in rows]

    def create_block(self, board_id: str, block: Block) -> Block:
        now = datetime.now()
        row = block.to_row()
        row["agent_board_id"] = board_id
        row["metadata"] = json.dumps(row["metadata"])
        row["created_at"] = now
        row["updated_at"] = now

        columns = list(row.keys())
        self._execute(
            f"INSERT INTO canvas_blocks ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            [row[column] for column in columns],
        )
        logging.debug(f"Stored block {block.id} ({block.type.value}) on board {board_id}")
        return block.model_copy(update={"board_id": board_id, "created_at": now, "updated_at": now})

    def update_block(self, block_id: str, fields: Dict[str, Any]) -> None:
        row = block_fields_to_row(fields)
        unknown = [column for column in row if column not in BLOCK_COLUMNS or column == "id"]
        if unknown:
            raise StoreError(f"Cannot update columns: {', '.join(unknown)}")
        if "metadata" in row:
            row["metadata"] = json.dumps(row["metadata"])

        self._require_block(block_id)
        row["updated_at"] = datetime.now()
        assignments = ", ".join(f"{column} = ?" for column in row)
        self._execute(
            f"UPDATE canvas_blocks SET {assignments} WHERE id = ?",
            list(row.values()) + [block_id],
        )

    def delete_block(self, block_id: str) -> None:
        self._require_block(block_id)
        self._in_transaction([
            ("DELETE FROM canvas_edges WHERE source_block_id = ? OR target_block_id = ?",
             [block_id, block_id]),
            ("DELETE FROM canvas_blocks WHERE id = ?", [block_id]),
        ])

    def update_positions(self, batch: List[PositionUpdate]) -> None:
        for update in batch:
            self._require_block(update.id)
        now = datetime.now()
        self._in_transaction([
            ("UPDATE canvas_blocks SET position_x = ?, position_y = ?, updated_at = ? WHERE id = ?",
             [update.x, update.y, now, update.id])
            for update in batch
        ])

    def create_edge(self, board_id: str, source_id: str, target_id: str,
                    edge_id: Optional[str] = None) -> Edge:
        edge = Edge(
            id=edge_id or new_id(),
            board_id=board_id,
            source_block_id=source_id,
            target_block_id=target_id,
            created_at=datetime.now(),
        )
        self._execute(
            "INSERT INTO canvas_edges (id, agent_board_id, source_block_id, target_block_id, "
            "edge_type, color, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [edge.id, board_id, source_id, target_id, edge.edge_type, edge.color, edge.created_at],
        )
        return edge

    def delete_edge(self, edge_id: str) -> None:
        if not self._fetch("SELECT 1 FROM canvas_edges WHERE id = ? LIMIT 1", [edge_id]):
            raise StoreError(f"Edge {edge_id} not found")
        self._execute("DELETE FROM canvas_edges WHERE id = ?", [edge_id])

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def _require_block(self, block_id: str) -> None:
        if not self._fetch("SELECT 1 FROM canvas_blocks WHERE id = ? LIMIT 1", [block_id]):
            raise StoreError(f"Block {block_id} not found")

    def _execute(self, query: str, params: List[Any]) -> None:
        conn = self._require_connection()
        try:
            conn.execute(query, params)
        except duckdb.Error as e:
            logging.error(f"DuckDB statement failed: {e}")
            raise StoreError(str(e)) from e

    def _fetch(self, query: str, params: List[Any]) -> List[tuple]:
        conn = self._require_connection()
        try:
            return conn.execute(query, params).fetchall()
        except duckdb.Error as e:
            logging.error(f"DuckDB query failed: {e}")
            raise StoreError(str(e)) from e

    def _in_transaction(self, statements: List[tuple]) -> None:
        """Run several statements atomically."""
        conn = self._require_connection()
        try:
            conn.execute("BEGIN TRANSACTION")
            for query, params in statements:
                conn.execute(query, params)
            conn.execute("COMMIT")
        except duckdb.Error as e:
            conn.execute("ROLLBACK")
            logging.error(f"DuckDB transaction failed: {e}")
            raise StoreError(str(e)) from e

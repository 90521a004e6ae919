"""
REST board store for canvasgraph.

This module talks to a PostgREST endpoint (such as a hosted Supabase project)
exposing the canvas_blocks and canvas_edges tables.
"""

import httpx
import logging
from typing import Any, Dict, List, Optional

from ..config import config
from ..errors import StoreError
from ..models import Block, Edge, PositionUpdate
from ..models.blocks import block_fields_to_row, new_id
from .base import BoardStore

BLOCKS_TABLE = "canvas_blocks"
EDGES_TABLE = "canvas_edges"


class RestBoardStore(BoardStore):
    """
    Board store backed by a PostgREST HTTP API.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[float] = None, client: Optional[httpx.Client] = None):
        """
        Initialize the REST store.

        Args:
            base_url: REST root, e.g. "https://project.supabase.co/rest/v1"
            api_key: Key sent as apikey and bearer token
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (tests pass one with a mock transport)
        """
        self.base_url = (base_url or config.rest_url).rstrip("/")
        api_key = api_key if api_key is not None else config.rest_api_key

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"

        self.client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else config.store_timeout,
        )
        self.client.headers.update(headers)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        """Close the underlying HTTP client."""
        self.client.close()

    def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None,
                 json: Any = None, representation: bool = False) -> Any:
        """
        Send a request and decode the JSON body, mapping failures to StoreError.
        """
        headers = {"Prefer": "return=representation"} if representation else None
        try:
            response = self.client.request(method, f"{self.base_url}/{path}",
                                           params=params, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logging.error(f"Store request failed: {method} {path} -> {e.response.status_code}")
            raise StoreError(f"{method} {path} failed with {e.response.status_code}: {e.response.text}") from e
        except httpx.RequestError as e:
            logging.error(f"Failed to reach store: {e}")
            raise StoreError(f"Failed to reach store: {e}") from e

        if not response.content:
            return None
        return response.json()

    def _single(self, rows: Any, what: str) -> Dict[str, Any]:
        if isinstance(rows, list) and rows:
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise StoreError(f"Store returned no {what}")

    def list_blocks(self, board_id: str) -> List[Block]:
        rows = self._request("GET", BLOCKS_TABLE, params={
            "select": "*",
            "agent_board_id": f"eq.{board_id}",
            "order": "created_at.asc",
        })
        return [Block.from_row(row) for row in rows or []]

    def list_edges(self, board_id: str) -> List[Edge]:
        rows = self._request("GET", EDGES_TABLE, params={
            "select": "*",
            "agent_board_id": f"eq.{board_id}",
            "order": "created_at.asc",
        })
        return [Edge.from_row(row) for row in rows or []]

    def create_block(self, board_id: str, block: Block) -> Block:
        row = block.to_row()
        row["agent_board_id"] = board_id
        rows = self._request("POST", BLOCKS_TABLE, json=row, representation=True)
        return Block.from_row(self._single(rows, "block"))

    def update_block(self, block_id: str, fields: Dict[str, Any]) -> None:
        self._request("PATCH", BLOCKS_TABLE, params={"id": f"eq.{block_id}"},
                      json=block_fields_to_row(fields))

    def delete_block(self, block_id: str) -> None:
        # canvas_edges references canvas_blocks with ON DELETE CASCADE
        self._request("DELETE", BLOCKS_TABLE, params={"id": f"eq.{block_id}"})

    def update_positions(self, batch: List[PositionUpdate]) -> None:
        # PostgREST has no multi-row partial update; one PATCH per block
        applied: List[str] = []
        for update in batch:
            try:
                self._request("PATCH", BLOCKS_TABLE, params={"id": f"eq.{update.id}"},
                              json={"position_x": update.x, "position_y": update.y})
            except StoreError as e:
                if not applied:
                    raise
                logging.warning(f"Position batch stopped after {len(applied)} of {len(batch)} block(s)")
                raise StoreError(str(e), applied=applied) from e
            applied.append(update.id)

    def create_edge(self, board_id: str, source_id: str, target_id: str,
                    edge_id: Optional[str] = None) -> Edge:
        rows = self._request("POST", EDGES_TABLE, json={
            "id": edge_id or new_id(),
            "agent_board_id": board_id,
            "source_block_id": source_id,
            "target_block_id": target_id,
        }, representation=True)
        return Edge.from_row(self._single(rows, "edge"))

    def delete_edge(self, edge_id: str) -> None:
        self._request("DELETE", EDGES_TABLE, params={"id": f"eq.{edge_id}"})

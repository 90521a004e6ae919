"""
Tests for the board store implementations.
"""

import json
import os
import tempfile
import unittest
from pathlib import Path

import httpx
import pytest

from canvasgraph.controller import GraphController
from canvasgraph.errors import StoreError
from canvasgraph.models import BlockType, Position, PositionUpdate, create_block
from canvasgraph.store import DuckDBBoardStore, MemoryBoardStore, RestBoardStore, create_store

BOARD = "board-1"


class TestDuckDBBoardStore(unittest.TestCase):
    """Test the DuckDB store against a temporary database file."""

    def setUp(self):
        """Set up test database."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "test.db"
        self.store = DuckDBBoardStore(str(self.db_path))
        self.store.connect()
        self.store.initialize_database()

    def tearDown(self):
        """Clean up test database."""
        self.store.disconnect()
        for path in Path(self.temp_dir).iterdir():
            path.unlink()
        os.rmdir(self.temp_dir)

    def test_database_initialization(self):
        """Test database creation and table initialization."""
        self.assertTrue(self.db_path.exists())
        self.assertEqual(self.store.list_blocks(BOARD), [])
        self.assertEqual(self.store.list_edges(BOARD), [])

        # Initializing twice is harmless
        self.store.initialize_database()

    def test_block_operations(self):
        """Test block create, list, update and delete."""
        block = create_block(
            BlockType.GROUP,
            Position(x=10, y=20),
            {"metadata": {"member_ids": ["x"]}, "instruction_prompt": "summary"},
        )
        stored = self.store.create_block(BOARD, block)
        self.assertEqual(stored.board_id, BOARD)
        self.assertIsNotNone(stored.created_at)

        listed = self.store.list_blocks(BOARD)
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0].id, block.id)
        self.assertEqual(listed[0].type, BlockType.GROUP)
        self.assertEqual(listed[0].position, Position(x=10, y=20))
        self.assertEqual(listed[0].size, block.size)
        self.assertEqual(listed[0].metadata, {"member_ids": ["x"]})
        self.assertEqual(listed[0].instruction_prompt, "summary")

        self.store.update_block(block.id, {"title": "Renamed", "metadata": {"member_ids": []}})
        updated = self.store.list_blocks(BOARD)[0]
        self.assertEqual(updated.title, "Renamed")
        self.assertEqual(updated.metadata, {"member_ids": []})

        self.store.delete_block(block.id)
        self.assertEqual(self.store.list_blocks(BOARD), [])

    def test_creation_order_and_board_isolation(self):
        ids = [self.store.create_block(BOARD, create_block(BlockType.TEXT)).id for _ in range(3)]
        self.store.create_block("other-board", create_block(BlockType.TEXT))

        self.assertEqual([block.id for block in self.store.list_blocks(BOARD)], ids)

    def test_delete_block_cascades_edges(self):
        a = self.store.create_block(BOARD, create_block(BlockType.TEXT))
        b = self.store.create_block(BOARD, create_block(BlockType.CHAT))
        c = self.store.create_block(BOARD, create_block(BlockType.TEXT))
        self.store.create_edge(BOARD, a.id, b.id)
        kept = self.store.create_edge(BOARD, c.id, b.id, "edge-kept")

        self.store.delete_block(a.id)

        self.assertEqual([edge.id for edge in self.store.list_edges(BOARD)], [kept.id])

    def test_update_positions(self):
        a = self.store.create_block(BOARD, create_block(BlockType.TEXT))
        b = self.store.create_block(BOARD, create_block(BlockType.TEXT))

        self.store.update_positions([
            PositionUpdate(id=a.id, x=1, y=2),
            PositionUpdate(id=b.id, x=3, y=4),
        ])

        positions = {block.id: block.position for block in self.store.list_blocks(BOARD)}
        self.assertEqual(positions, {a.id: Position(x=1, y=2), b.id: Position(x=3, y=4)})

    def test_update_positions_unknown_block(self):
        a = self.store.create_block(BOARD, create_block(BlockType.TEXT, Position(x=5, y=5)))

        with self.assertRaises(StoreError):
            self.store.update_positions([
                PositionUpdate(id=a.id, x=1, y=2),
                PositionUpdate(id="missing", x=3, y=4),
            ])
        self.assertEqual(self.store.list_blocks(BOARD)[0].position, Position(x=5, y=5))

    def test_errors_become_store_errors(self):
        block = create_block(BlockType.TEXT)
        self.store.create_block(BOARD, block)

        with self.assertRaises(StoreError):
            self.store.create_block(BOARD, block)
        with self.assertRaises(StoreError):
            self.store.update_block("missing", {"title": "x"})
        with self.assertRaises(StoreError):
            self.store.delete_edge("missing")
        with self.assertRaises(StoreError):
            self.store.update_block(block.id, {"no_such_column": 1})

    def test_requires_connection(self):
        store = DuckDBBoardStore(":memory:")
        with self.assertRaises(RuntimeError):
            store.list_blocks(BOARD)

    def test_context_manager(self):
        with DuckDBBoardStore(":memory:") as store:
            store.initialize_database()
            self.assertIsNotNone(store.connection)
        self.assertIsNone(store.connection)

    def test_controller_round_trip(self):
        """Test that a board edited through a controller loads back intact."""
        controller = GraphController(self.store, BOARD)
        text = controller.add_block(BlockType.TEXT, Position(x=100, y=100), {"content": "Hello"})
        chat = controller.add_block(BlockType.CHAT, Position(x=500, y=100))
        controller.connect(text.id, chat.id)

        reloaded = GraphController(self.store, BOARD)
        reloaded.load()

        self.assertEqual([block.id for block in reloaded.blocks], [text.id, chat.id])
        self.assertEqual(reloaded.aggregate(chat.id).text_context, "[TEXT: Text Block]\nHello")


class TestMemoryBoardStore(unittest.TestCase):
    """Test the in-memory store used by the controller tests."""

    def test_fail_next(self):
        store = MemoryBoardStore()
        store.fail_next("create_block", "quota exceeded")
        block = create_block(BlockType.TEXT)

        with self.assertRaises(StoreError) as ctx:
            store.create_block(BOARD, block)
        self.assertIn("quota exceeded", str(ctx.exception))

        # Only the next call fails
        store.create_block(BOARD, block)
        self.assertEqual(store.calls_to("create_block"), [block.id, block.id])

    def test_update_validates_fields(self):
        store = MemoryBoardStore()
        block = store.create_block(BOARD, create_block(BlockType.TEXT))

        store.update_block(block.id, {"content": "Hi"})
        self.assertEqual(store.list_blocks(BOARD)[0].content, "Hi")

        with self.assertRaises(StoreError):
            store.update_block("missing", {"content": "Hi"})


class TestCreateStore(unittest.TestCase):

    def test_memory_backend(self):
        self.assertIsInstance(create_store("memory"), MemoryBoardStore)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_store("cassandra")


class RecordingTransport:
    """Mock PostgREST endpoint backed by a list of recorded requests."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="permission denied")
        if request.method == "POST":
            return httpx.Response(201, json=[json.loads(request.content)])
        if request.method == "GET" and request.url.path.endswith("canvas_blocks"):
            return httpx.Response(200, json=[{
                "id": "b1",
                "agent_board_id": BOARD,
                "type": "text",
                "title": "Remote",
                "content": "Hello",
                "position_x": 10,
                "position_y": 20,
                "width": 280,
                "height": 200,
                "parsing_status": "none",
                "metadata": {},
            }])
        if request.method == "GET":
            return httpx.Response(200, json=[])
        return httpx.Response(204)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def rest_store(transport):
    client = httpx.Client(transport=httpx.MockTransport(transport))
    store = RestBoardStore(base_url="https://project.example.co/rest/v1", api_key="anon-key", client=client)
    yield store
    store.close()


def test_rest_list_blocks(rest_store, transport):
    blocks = rest_store.list_blocks(BOARD)

    assert [block.title for block in blocks] == ["Remote"]
    assert blocks[0].position == Position(x=10, y=20)

    request = transport.requests[0]
    assert request.url.path == "/rest/v1/canvas_blocks"
    assert request.url.params["agent_board_id"] == f"eq.{BOARD}"
    assert request.url.params["order"] == "created_at.asc"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


def test_rest_create_block(rest_store, transport):
    block = create_block(BlockType.CHAT, Position(x=1, y=2))

    stored = rest_store.create_block(BOARD, block)

    assert stored.id == block.id
    assert stored.board_id == BOARD
    request = transport.requests[0]
    assert request.method == "POST"
    assert request.headers["prefer"] == "return=representation"
    body = json.loads(request.content)
    assert body["type"] == "chat"
    assert body["position_x"] == 1


def test_rest_create_edge(rest_store, transport):
    edge = rest_store.create_edge(BOARD, "a", "b", "edge-1")

    assert edge.id == "edge-1"
    assert edge.source_block_id == "a"
    assert transport.requests[0].url.path == "/rest/v1/canvas_edges"


def test_rest_delete_block_is_one_request(rest_store, transport):
    rest_store.delete_block("b1")

    (request,) = transport.requests
    assert request.method == "DELETE"
    assert request.url.path.endswith("canvas_blocks")
    assert request.url.params["id"] == "eq.b1"


def test_rest_update_positions(rest_store, transport):
    rest_store.update_positions([PositionUpdate(id="a", x=1, y=2), PositionUpdate(id="b", x=3, y=4)])

    assert [request.method for request in transport.requests] == ["PATCH", "PATCH"]
    assert json.loads(transport.requests[1].content) == {"position_x": 3, "position_y": 4}


def test_rest_update_positions_reports_applied():
    def reject_second(request):
        if request.url.params["id"] == "eq.b":
            return httpx.Response(500, text="statement timeout")
        return httpx.Response(204)

    store = RestBoardStore(base_url="https://project.example.co/rest/v1",
                           client=httpx.Client(transport=httpx.MockTransport(reject_second)))
    batch = [PositionUpdate(id="a", x=1, y=2), PositionUpdate(id="b", x=3, y=4), PositionUpdate(id="c", x=5, y=6)]

    with pytest.raises(StoreError) as excinfo:
        store.update_positions(batch)
    assert excinfo.value.applied == ["a"]


def test_rest_update_positions_first_failure_applies_nothing():
    store = RestBoardStore(base_url="https://project.example.co/rest/v1",
                           client=httpx.Client(transport=httpx.MockTransport(RecordingTransport(status_code=500))))

    with pytest.raises(StoreError) as excinfo:
        store.update_positions([PositionUpdate(id="a", x=1, y=2)])
    assert excinfo.value.applied == []


def test_rest_update_block_maps_columns(rest_store, transport):
    rest_store.update_block("a", {"parsing_status": "pending", "title": "Doc"})

    assert json.loads(transport.requests[0].content) == {"parsing_status": "pending", "title": "Doc"}


def test_rest_http_error():
    client = httpx.Client(transport=httpx.MockTransport(RecordingTransport(status_code=403)))
    store = RestBoardStore(base_url="https://project.example.co/rest/v1", api_key="", client=client)

    with pytest.raises(StoreError, match="403"):
        store.list_edges(BOARD)


def test_rest_connection_error():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = RestBoardStore(base_url="https://project.example.co/rest/v1",
                           client=httpx.Client(transport=httpx.MockTransport(unreachable)))

    with pytest.raises(StoreError, match="Failed to reach store"):
        store.delete_edge("e1")

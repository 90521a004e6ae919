"""
Tests for coordinate conversion and block placement.
"""

import random

import pytest

from canvasgraph.errors import PlacementUnresolved
from canvasgraph.models import BlockType, DropPayload, Position, ViewportState, create_block
from canvasgraph.placement import PlacementResolver, screen_to_canvas, viewport_center


@pytest.fixture
def viewport():
    return ViewportState(
        origin=Position(x=50, y=20),
        pan=Position(x=100, y=-40),
        zoom=2.0,
        width=800,
        height=600,
    )


@pytest.fixture
def resolver():
    return PlacementResolver(rng=random.Random(7), board_id="board-1")


def test_screen_to_canvas(viewport):
    point = screen_to_canvas(Position(x=350, y=220), viewport)
    assert point == Position(x=100, y=120)


def test_screen_to_canvas_identity():
    viewport = ViewportState(origin=Position())
    assert screen_to_canvas(Position(x=12, y=34), viewport) == Position(x=12, y=34)


def test_unmounted_canvas_unresolved():
    with pytest.raises(PlacementUnresolved):
        screen_to_canvas(Position(x=1, y=1), ViewportState())


def test_zero_zoom_unresolved():
    with pytest.raises(PlacementUnresolved):
        screen_to_canvas(Position(x=1, y=1), ViewportState(origin=Position(), zoom=0))


def test_viewport_center(viewport):
    # Screen centre (450, 320) -> ((450 - 50 - 100) / 2, (320 - 20 + 40) / 2)
    assert viewport_center(viewport) == Position(x=150, y=170)


def test_viewport_center_needs_size():
    with pytest.raises(PlacementUnresolved):
        viewport_center(ViewportState(origin=Position()))


def test_toolbar_random_position(resolver):
    for _ in range(20):
        block = resolver.resolve_toolbar(BlockType.TEXT)
        assert 100 <= block.position.x <= 500
        assert 100 <= block.position.y <= 500
        assert block.board_id == "board-1"


def test_toolbar_explicit_position(resolver):
    block = resolver.resolve_toolbar("chat", Position(x=0, y=0), {"title": "Research"})
    assert block.position == Position(x=0, y=0)
    assert block.type == BlockType.CHAT
    assert block.title == "Research"


def test_drop_knowledge_becomes_brain(resolver, viewport):
    payload = DropPayload(kind="knowledge", item={"title": "Brand guide", "description": "Our voice"})
    block = resolver.resolve_drop(payload, Position(x=350, y=220), viewport)

    assert block.type == BlockType.BRAIN
    assert block.title == "Brand guide"
    assert block.content == "Our voice"
    assert block.position == Position(x=100, y=120)


def test_drop_block_type(resolver, viewport):
    payload = DropPayload(kind="block-type", item={"type": "document"})
    block = resolver.resolve_drop(payload, Position(x=350, y=220), viewport)

    assert block.type == BlockType.DOCUMENT
    assert block.title == "Document"


def test_drop_brain(resolver, viewport):
    payload = DropPayload(kind="brain-drop")
    assert resolver.resolve_drop(payload, Position(x=350, y=220), viewport).type == BlockType.BRAIN


@pytest.mark.parametrize("item, expected_type", [
    ({"title": "Ad", "image_url": "http://x/ad.png"}, BlockType.IMAGE),
    ({"title": "Ad", "content": "Copy"}, BlockType.BRAIN),
])
def test_drop_swipe(resolver, viewport, item, expected_type):
    block = resolver.resolve_drop(DropPayload(kind="swipe", item=item), Position(x=60, y=30), viewport)
    assert block.type == expected_type


def test_drop_image_asset(resolver, viewport):
    payload = DropPayload(kind="asset", item={"title": "Logo", "kind": "image", "thumbnail_url": "http://x/t.png"})
    block = resolver.resolve_drop(payload, Position(x=60, y=30), viewport)

    assert block.type == BlockType.IMAGE
    assert block.file_url == "http://x/t.png"


def test_drop_template(resolver, viewport):
    payload = DropPayload(kind="template", item={"title": "Hook", "prompt_text": "Write a hook"})
    block = resolver.resolve_drop(payload, Position(x=60, y=30), viewport)

    assert block.type == BlockType.TEXT
    assert block.content == "Write a hook"


def test_drop_offer(resolver, viewport):
    payload = DropPayload(kind="offer", item={"title": "Spring", "description": "Bundle", "price": "$10", "discount": "20%"})
    block = resolver.resolve_drop(payload, Position(x=60, y=30), viewport)

    assert block.type == BlockType.BRAIN
    assert block.content == "Bundle\n\nPrice: $10\nDiscount: 20%"


def test_unknown_drop_creates_nothing(resolver, viewport):
    assert resolver.resolve_drop(DropPayload(kind="spreadsheet"), Position(x=1, y=1), viewport) is None


def test_unknown_block_type_drop(resolver, viewport):
    payload = DropPayload(kind="block-type", item={"type": "spreadsheet"})
    assert resolver.resolve_drop(payload, Position(x=1, y=1), viewport) is None


def test_drop_on_unmounted_canvas(resolver):
    payload = DropPayload(kind="knowledge", item={"title": "Guide"})
    assert resolver.resolve_drop(payload, Position(x=1, y=1), ViewportState()) is None


def test_custom_seeder(resolver, viewport):
    resolver.register_seeder("note", lambda item: {"type": BlockType.TEXT, "content": item["body"]})
    block = resolver.resolve_drop(DropPayload(kind="note", item={"body": "Hi"}), Position(x=60, y=30), viewport)

    assert "note" in resolver.list_drop_kinds()
    assert block.content == "Hi"


def test_paste_text(resolver, viewport):
    block = resolver.resolve_paste(viewport, text="Remember this")

    assert block.type == BlockType.TEXT
    assert block.title == "Pasted Text"
    assert block.content == "Remember this"
    assert block.position == Position(x=150, y=170)


def test_paste_url(resolver, viewport):
    block = resolver.resolve_paste(viewport, text=" https://example.com/page ")
    assert block.type == BlockType.URL
    assert block.url == "https://example.com/page"


def test_paste_image(resolver, viewport):
    block = resolver.resolve_paste(viewport, text="ignored", image_url="http://x/p.png")
    assert block.type == BlockType.IMAGE
    assert block.file_url == "http://x/p.png"


def test_paste_nothing(resolver, viewport):
    assert resolver.resolve_paste(viewport) is None
    assert resolver.resolve_paste(ViewportState(), text="Hi") is None


@pytest.mark.parametrize("content_type, field", [
    ("Headline", "headline"),
    ("Hook", "headline"),
    ("CTA", "cta"),
    ("Body copy", "primary_text"),
])
def test_resolve_creative(resolver, content_type, field):
    chat = create_block(BlockType.CHAT, Position(x=100, y=50))
    creative = resolver.resolve_creative(chat, "Buy now", content_type)

    assert creative.type == BlockType.CREATIVE
    assert creative.position == Position(x=500, y=50)
    assert creative.title == f"Creative - {content_type}"
    assert creative.metadata == {"status": "draft", field: "Buy now"}

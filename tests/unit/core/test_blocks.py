"""
Unit tests for core/blocks.py - typed node construction

Tests:
- Dispatch over every block type and the entity kinds
- Required-field checks per kind
- Rejection of unknown type tags
"""
import pytest

from core.blocks import (
    InvalidBlockConstructionError,
    UnsupportedBlockTypeError,
    build_node,
)
from core.ontology import BlockType, EntityType
from core.schemas import ContentNode, EdgeData


# =============================================================================
# DISPATCH TESTS
# =============================================================================

@pytest.mark.parametrize("block_type", [
    BlockType.BOOK, BlockType.SECTION, BlockType.SPARK, BlockType.FIGURE,
    BlockType.LIST_ITEM, BlockType.ORDERED_LIST, BlockType.UNORDERED_LIST,
    BlockType.TABLE, BlockType.TABLE_ROW, BlockType.TABLE_CELL,
])
def test_plain_kinds_need_no_extra_fields(block_type):
    node = build_node({"type": block_type.value, "id": "n1"})

    assert isinstance(node, ContentNode)
    assert node.type == block_type.value


@pytest.mark.parametrize("entity_type", list(EntityType))
def test_entity_kinds_require_text(entity_type):
    """
    Validate that every entity kind goes through the entity builder.

    Verifies:
    - Entities with text are built
    - Entities without text are rejected
    """
    node = build_node({"type": entity_type.value, "properties": {"text": ["An idea"]}})
    assert node.type == entity_type.value

    with pytest.raises(InvalidBlockConstructionError):
        build_node({"type": entity_type.value, "properties": {"text": []}})


def test_text_block_requires_text_and_size():
    """
    Validate the text block's required fields.

    Verifies:
    - Text plus a known text size builds
    - Missing text, missing size or an unknown size is rejected
    """
    ok = build_node({
        "type": "text",
        "properties": {"text": ["Hello"]},
        "format": {"text_size": "header"},
    })
    assert ok.get_plain_text() == "Hello"

    with pytest.raises(InvalidBlockConstructionError):
        build_node({"type": "text", "format": {"text_size": "text"}})
    with pytest.raises(InvalidBlockConstructionError):
        build_node({"type": "text", "properties": {"text": ["Hello"]}})
    with pytest.raises(InvalidBlockConstructionError) as exc_info:
        build_node({
            "type": "text",
            "properties": {"text": ["Hello"]},
            "format": {"text_size": "huge"},
        })
    assert exc_info.value.block_type == "text"


def test_image_block_requires_source():
    node = build_node({"type": "image", "properties": {"source": ["cover.png"]}})
    assert node.get_property("source") == ["cover.png"]

    with pytest.raises(InvalidBlockConstructionError):
        build_node({"type": "image", "properties": {}})


def test_unknown_type_is_rejected():
    with pytest.raises(UnsupportedBlockTypeError) as exc_info:
        build_node({"type": "paragraph"})

    assert exc_info.value.block_type == "paragraph"


def test_missing_type_is_rejected():
    with pytest.raises(UnsupportedBlockTypeError):
        build_node({"id": "n1"})


def test_generates_id_and_stages_edges():
    """
    Validate id generation and edge staging on built nodes.

    Verifies:
    - Missing id comes from the injected factory
    - Descriptor edges are staged as EdgeData
    """
    ids = iter(["node-1", "edge-1"])
    node = build_node(
        {
            "type": "section",
            "edges": [{"source_id": "node-1", "target_id": "t", "type": "book-has-block"}],
        },
        id_factory=lambda: next(ids),
    )

    assert node.id == "node-1"
    assert len(node.edges) == 1
    assert isinstance(node.edges[0], EdgeData)
    assert node.edges[0].id == "edge-1"


def test_accepts_content_node():
    original = ContentNode.create(type="section", id="s1", properties={"anchor": "a"})

    rebuilt = build_node(original)

    assert rebuilt == original
    assert rebuilt is not original

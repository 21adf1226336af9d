"""
Unit tests for core/schemas.py - nodes, edges and ordering

Tests:
- Ordering policy (numeric keys sorted in place, others keep their slot)
- ContentNode property access and staged edges
- Copies are independent
- JSON round trip of a graph record
"""
import math

import msgspec
import pytest

from core.ontology import RelationType, SCHEMA_VERSION
from core.schemas import (
    ContentNode,
    EdgeData,
    GraphRecord,
    RenderNode,
    deserialize_record,
    edge_from_mapping,
    is_numeric,
    max_ordering_key,
    order_edges,
    serialize_record,
)


def make_edge(edge_id, key=None, target="x"):
    return EdgeData(
        id=edge_id, source_id="s", target_id=target,
        type=RelationType.BOOK_HAS_BLOCK.value, ordering_key=key,
    )


# =============================================================================
# ORDERING POLICY TESTS
# =============================================================================

def test_order_edges_keeps_missing_key_in_place():
    """
    Validate the documented ordering example.

    Verifies:
    - Keys [3, 1, missing] come out as [1, 3, missing]
    """
    edges = [make_edge("a", 3), make_edge("b", 1), make_edge("c", None)]

    ordered = order_edges(edges)

    assert [e.id for e in ordered] == ["b", "a", "c"]


def test_order_edges_missing_key_between_numbers():
    """
    Validate that an edge without a key keeps its exact position.

    Verifies:
    - Numeric edges are sorted among the slots they occupied
    - The keyless edge in the middle does not move
    """
    edges = [make_edge("a", 5), make_edge("b", None), make_edge("c", 2)]

    ordered = order_edges(edges)

    assert [e.id for e in ordered] == ["c", "b", "a"]


def test_order_edges_is_stable_for_equal_keys():
    edges = [make_edge("a", 1), make_edge("b", 0), make_edge("c", 1)]

    assert [e.id for e in order_edges(edges)] == ["b", "a", "c"]


def test_order_edges_does_not_mutate_input():
    edges = [make_edge("a", 2), make_edge("b", 1)]

    order_edges(edges)

    assert [e.id for e in edges] == ["a", "b"]


def test_is_numeric_rules():
    """
    Validate which ordering keys take part in comparisons.

    Verifies:
    - ints, floats and numeric strings are comparable
    - None, bools, NaN and text are not
    """
    assert is_numeric(0)
    assert is_numeric(2.5)
    assert is_numeric("3")
    assert not is_numeric(None)
    assert not is_numeric(True)
    assert not is_numeric(math.nan)
    assert not is_numeric("first")


def test_max_ordering_key_has_floor():
    assert max_ordering_key([]) == 0
    assert max_ordering_key([make_edge("a", None)]) == 0
    assert max_ordering_key([make_edge("a", 0), make_edge("b", 4)]) == 4


# =============================================================================
# EDGE TESTS
# =============================================================================

def test_edge_other_end_and_triple():
    edge = EdgeData.create("a", "b", RelationType.REFERENCES, id="e1", directional=False)

    assert edge.type == "references"
    assert edge.triple == ("a", "b", "references")
    assert edge.other_end("a") == "b"
    assert edge.other_end("b") == "a"
    assert edge.touches("a") and edge.touches("b") and not edge.touches("c")


def test_edge_is_immutable():
    edge = make_edge("a", 1)

    with pytest.raises(AttributeError):
        edge.ordering_key = 2


def test_edge_from_mapping_generates_missing_id():
    """
    Validate coercion of ingestion descriptors.

    Verifies:
    - A descriptor without id gets one from the factory
    - Enum types are stored as their string value
    - directional defaults to True
    """
    edge = edge_from_mapping(
        {"source_id": "a", "target_id": "b", "type": RelationType.HAS_BLOCK},
        id_factory=lambda: "generated",
    )

    assert edge.id == "generated"
    assert edge.type == "has-block"
    assert edge.directional is True
    assert edge.ordering_key is None


# =============================================================================
# CONTENT NODE TESTS
# =============================================================================

def test_create_generates_id_with_factory():
    node = ContentNode.create(type="section", id_factory=lambda: "sec-9")

    assert node.id == "sec-9"
    assert node.type == "section"
    assert node.schema_version == SCHEMA_VERSION
    assert node.edges == []


def test_node_id_is_immutable():
    node = ContentNode.create(type="section")

    with pytest.raises(AttributeError):
        node.id = "other"


def test_has_property_is_strict():
    """
    Validate strict property equality.

    Verifies:
    - Equal values match
    - Absent keys never match
    - A bool flag does not match the number 1
    """
    node = ContentNode.create(type="section", properties={"anchor": "ch1", "flag": True})

    assert node.has_property("anchor", "ch1")
    assert not node.has_property("anchor", "ch2")
    assert not node.has_property("epub_id", None)
    assert not node.has_property("flag", 1)
    assert node.has_property("flag", True)


def test_set_property_writes_single_key():
    node = ContentNode.create(type="section")

    node.set_property("anchor", "ch1")

    assert node.get_property("anchor") == "ch1"
    assert node.get_property("missing", "default") == "default"


def test_create_edge_appends_after_staged_keys():
    """
    Validate that ordered edge creation appends after staged siblings.

    Verifies:
    - First ordered edge gets key 1
    - Next edge gets 1 + the largest staged key
    - Unordered edges carry no key
    """
    node = ContentNode.create(type="section", id="s")
    ids = iter(["e1", "e2", "e3"])

    first = node.create_edge("a", RelationType.BOOK_HAS_BLOCK, id_factory=lambda: next(ids))
    second = node.create_edge("b", RelationType.BOOK_HAS_BLOCK, id_factory=lambda: next(ids))
    loose = node.create_edge("c", RelationType.REFERENCES, ordered=False,
                             id_factory=lambda: next(ids))

    assert first.ordering_key == 1
    assert second.ordering_key == 2
    assert loose.ordering_key is None
    assert [e.id for e in node.edges] == ["e1", "e2", "e3"]


def test_stage_edge_ignores_known_id():
    node = ContentNode.create(type="section", id="s")
    edge = make_edge("e1", 0)

    node.stage_edge(edge)
    node.stage_edge(edge)

    assert len(node.edges) == 1


def test_get_ordered_edges_sorts_staged():
    node = ContentNode.create(type="section", id="s",
                              edges=[make_edge("a", 2), make_edge("b", 1)])

    assert [e.id for e in node.get_ordered_edges()] == ["b", "a"]


def test_plain_text_joins_and_strips():
    node = ContentNode.create(type="text", properties={"text": ["  Hello", "World  "]})

    assert node.get_raw_text() == ["  Hello", "World  "]
    assert node.get_plain_text() == "Hello\n\nWorld"
    assert node.get_plain_text(" ") == "Hello World"


def test_clone_is_independent():
    """
    Validate that clone() produces a deep, independent copy.

    Verifies:
    - Mutating the copy's properties leaves the original untouched
    - Edges can be replaced on the copy
    """
    node = ContentNode.create(type="text", properties={"text": ["a"]},
                              edges=[make_edge("e1", 0)])

    copy = node.clone(edges=[])
    copy.properties["text"].append("b")
    copy.set_format("text_size", "header")

    assert node.properties["text"] == ["a"]
    assert node.format == {}
    assert copy.edges == []
    assert len(node.edges) == 1


def test_to_raw_drops_staged_edges():
    node = ContentNode.create(type="section", id="s", edges=[make_edge("e1", 0)])

    raw = node.to_raw()

    assert "edges" not in raw
    assert raw["id"] == "s"


# =============================================================================
# DERIVED STRUCTURES
# =============================================================================

def test_render_node_iter_nodes_is_preorder():
    a, b, c, d = (ContentNode.create(type="section", id=i) for i in "abcd")
    tree = RenderNode(node=a, children=[
        RenderNode(node=b, children=[RenderNode(node=c)], position=0),
        RenderNode(node=d, position=1),
    ])

    assert [n.id for n in tree.iter_nodes()] == ["a", "b", "c", "d"]


def test_graph_record_json_round_trip():
    record = GraphRecord(
        nodes=[ContentNode.create(type="book", id="R")],
        edges=[make_edge("e1", 0, target="R")],
        entry_id="R",
    )

    decoded = deserialize_record(serialize_record(record))

    assert decoded == record
    assert msgspec.to_builtins(decoded)["entry_id"] == "R"


def test_node_and_edge_json_helpers():
    """
    Validate the single-value JSON helpers.

    Verifies:
    - A node keeps its staged edges through encode/decode
    - Edge lists decode to EdgeData values
    """
    from core.schemas import (
        deserialize_edges,
        deserialize_node,
        serialize_edges,
        serialize_node,
    )

    node = ContentNode.create(type="section", id="s", edges=[make_edge("e1", 1)])
    edges = [make_edge("e1", 1), make_edge("e2", None)]

    assert deserialize_node(serialize_node(node)) == node
    assert deserialize_edges(serialize_edges(edges)) == edges

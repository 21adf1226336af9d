"""
BOOKGRAPH SCHEMAS - The Grammar of Book Content

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure sentences).

This module defines the core data structures that flow through the graph:
- EdgeData: An immutable, typed, optionally ordered relationship
- ContentNode: A typed content block with property and format bags
- RenderNode: The ordered tree projection handed to exporters
- AttachPoint: Where a merged branch is hung in the receiving graph
- GraphRecord: The flat persistence shape (nodes + edges + entry id)
- Ordering helpers and serialization helpers

Design Principles:
1. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
2. IMMUTABLE IDS: Node and edge structs are frozen; ids never change
3. EDGES ARE VALUES: EdgeData is frozen, "changing" an edge means replacing it
4. STAGED, NOT OWNED: Edges on a ContentNode are staged for a graph to
   register; once registered the graph is the single source of truth
"""
import copy
import math
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import msgspec

from core.ontology import DEFAULT_TEXT_JOIN, SCHEMA_VERSION


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

IdFactory = Callable[[], str]


def generate_id() -> str:
    """Generate a new UUID hex string for node/edge IDs."""
    return uuid.uuid4().hex


def is_numeric(value: Any) -> bool:
    """
    Check if an ordering key can take part in a numeric comparison.

    Ints, floats and numeric strings qualify. None, bools and NaN do not.
    """
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(value)
    if isinstance(value, str):
        try:
            return not math.isnan(float(value))
        except ValueError:
            return False
    return False


# =============================================================================
# EDGE DATA (The Graph Relationship Payload)
# =============================================================================

class EdgeData(msgspec.Struct, kw_only=True, frozen=True):
    """
    An immutable relationship between two content nodes.

    Edges are intentionally "thin" - they carry relationship semantics and
    an optional sibling order, never content.

    Directionality decides ownership: a directional edge belongs to its
    source and is walked source -> target only; a non-directional edge can
    be walked from either endpoint.
    """
    # === Identity ===
    id: str
    source_id: str
    target_id: str
    type: str                                  # RelationType/EntityRelation value

    # === Properties ===
    ordering_key: Optional[float] = None       # Sibling order among a source's edges
    directional: bool = True

    @property
    def triple(self) -> tuple:
        """The (source, target, type) identity no two stored edges may share."""
        return (self.source_id, self.target_id, self.type)

    def touches(self, node_id: str) -> bool:
        """True if node_id is either endpoint."""
        return self.source_id == node_id or self.target_id == node_id

    def other_end(self, node_id: str) -> str:
        """The endpoint reached when walking this edge from node_id."""
        if self.source_id == node_id:
            return self.target_id
        return self.source_id

    @classmethod
    def create(
        cls,
        source_id: str,
        target_id: str,
        type: str,
        id_factory: Optional[IdFactory] = None,
        **kwargs
    ) -> "EdgeData":
        """Factory method to create an EdgeData with optional custom ID."""
        edge_id = kwargs.pop("id", None) or (id_factory or generate_id)()
        return cls(
            id=edge_id,
            source_id=source_id,
            target_id=target_id,
            type=str(getattr(type, "value", type)),
            **kwargs
        )


def edge_from_mapping(
    raw: Union[EdgeData, Mapping[str, Any]],
    id_factory: Optional[IdFactory] = None,
) -> EdgeData:
    """
    Coerce an ingestion edge descriptor into an EdgeData.

    Descriptors may omit "id"; one is generated through id_factory.
    """
    if isinstance(raw, EdgeData):
        return raw
    data = dict(raw)
    if not data.get("id"):
        data["id"] = (id_factory or generate_id)()
    if "type" in data:
        data["type"] = getattr(data["type"], "value", data["type"])
    return msgspec.convert(data, type=EdgeData, strict=False)


def order_edges(edges: Iterable[EdgeData]) -> List[EdgeData]:
    """
    Sort edges ascending by ordering key.

    Only keys that are present and numeric are compared. Those edges are
    sorted among themselves (stable) and put back into the slots they
    occupied; an edge without a comparable key keeps its exact position.
    A partially ordered edge set therefore degrades to insertion order
    instead of raising.
    """
    result = list(edges)
    slots = [i for i, edge in enumerate(result) if is_numeric(edge.ordering_key)]
    ranked = sorted((result[i] for i in slots), key=lambda e: float(e.ordering_key))
    for slot, edge in zip(slots, ranked):
        result[slot] = edge
    return result


def max_ordering_key(edges: Iterable[EdgeData], floor: float = 0) -> float:
    """Largest numeric ordering key among edges, never below floor."""
    keys = [float(e.ordering_key) for e in edges if is_numeric(e.ordering_key)]
    return max([floor, *keys])


def as_order_key(value: float) -> Union[int, float]:
    # Keys computed from whole numbers stay ints
    return int(value) if float(value).is_integer() else value


# =============================================================================
# CONTENT NODE (The Core Graph Payload)
# =============================================================================

class ContentNode(msgspec.Struct, kw_only=True, frozen=True):
    """
    A typed, identified unit of book content.

    The struct is frozen: id and type never change and the property/format
    bags cannot be swapped out. Single keys are written with set_property().

    `edges` only holds STAGED relationships - ones supplied at construction
    or created with create_edge(). A ContentGraph collects and registers them
    in add_nodes() and clears them from the node; a node read back from a
    graph carries edges only as a transient, non-authoritative copy.
    """
    # === Identity ===
    id: str
    type: str                                  # BlockType/EntityType value

    # === Content ===
    book_context: str = ""                     # Owning book
    properties: Dict[str, Any] = msgspec.field(default_factory=dict)
    format: Dict[str, Any] = msgspec.field(default_factory=dict)
    schema_version: str = SCHEMA_VERSION

    # === Staged relationships ===
    edges: List[EdgeData] = msgspec.field(default_factory=list)

    def has_property(self, key: str, value: Any) -> bool:
        """Strict equality test against the property bag."""
        if key not in self.properties:
            return False
        current = self.properties[key]
        # True == 1 in Python; a flag never matches a number
        if isinstance(current, bool) != isinstance(value, bool):
            return False
        return current == value

    def get_property(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def set_property(self, key: str, value: Any) -> None:
        """Write a single property key."""
        self.properties[key] = value

    def set_format(self, key: str, value: Any) -> None:
        """Write a single format key."""
        self.format[key] = value

    # --- staged edges -------------------------------------------------------

    def get_ordered_edges(self) -> List[EdgeData]:
        """Staged edges sorted ascending by ordering key."""
        return order_edges(self.edges)

    def stage_edge(self, edge: EdgeData) -> None:
        """Stage an edge. An id already staged is ignored."""
        if all(e.id != edge.id for e in self.edges):
            self.edges.append(edge)

    def stage_edges(self, edges: Iterable[EdgeData]) -> None:
        for edge in edges:
            self.stage_edge(edge)

    def create_edge(
        self,
        target_id: str,
        type: str,
        directional: bool = True,
        ordered: bool = True,
        id_factory: Optional[IdFactory] = None,
    ) -> EdgeData:
        """
        Stage a new edge from this node to target_id.

        When ordered, the edge is appended after the staged siblings:
        its key is 1 + the largest staged ordering key (1 when none).
        """
        ordering_key = None
        if ordered:
            ordering_key = as_order_key(max_ordering_key(self.edges) + 1)
        edge = EdgeData.create(
            source_id=self.id,
            target_id=target_id,
            type=type,
            id_factory=id_factory,
            ordering_key=ordering_key,
            directional=directional,
        )
        self.stage_edge(edge)
        return edge

    def clear_edges(self) -> None:
        self.edges.clear()

    # --- text ---------------------------------------------------------------

    def get_raw_text(self) -> List[str]:
        """The node's text array (empty when it carries none)."""
        return list(self.properties.get("text") or [])

    def get_plain_text(self, join: str = DEFAULT_TEXT_JOIN) -> str:
        return join.join(self.get_raw_text()).strip()

    # --- copies -------------------------------------------------------------

    def clone(self, edges: Optional[Iterable[EdgeData]] = None) -> "ContentNode":
        """
        Deep, independent copy of this node.

        Args:
            edges: Edges to carry on the copy. None copies the staged edges.
        """
        return msgspec.structs.replace(
            self,
            properties=copy.deepcopy(self.properties),
            format=copy.deepcopy(self.format),
            edges=list(self.edges if edges is None else edges),
        )

    def to_raw(self) -> Dict[str, Any]:
        """Builtin representation without staged edges."""
        data = msgspec.to_builtins(self)
        data.pop("edges", None)
        return data

    @classmethod
    def create(
        cls,
        type: str,
        book_context: str = "",
        id_factory: Optional[IdFactory] = None,
        **kwargs
    ) -> "ContentNode":
        """Factory method to create a ContentNode with optional custom ID."""
        node_id = kwargs.pop("id", None) or (id_factory or generate_id)()
        edges = [edge_from_mapping(e, id_factory) for e in kwargs.pop("edges", None) or []]
        properties = kwargs.pop("properties", None) or {}
        format = kwargs.pop("format", None) or {}
        schema_version = kwargs.pop("schema_version", None) or SCHEMA_VERSION
        node = cls(
            id=node_id,
            type=str(getattr(type, "value", type)),
            book_context=book_context or "",
            properties=dict(properties),
            format=dict(format),
            schema_version=schema_version,
            **kwargs
        )
        node.stage_edges(edges)
        return node


# =============================================================================
# DERIVED / EXCHANGE STRUCTURES
# =============================================================================

class RenderNode(msgspec.Struct, kw_only=True):
    """
    One node of an ordered tree projection of the graph.

    Purely derived and recomputed per traversal call. `position` is the
    index among siblings (0 for the root).
    """
    node: ContentNode
    children: List["RenderNode"] = msgspec.field(default_factory=list)
    position: int = 0

    def iter_nodes(self):
        """Pre-order iteration over the projected nodes."""
        stack = [self]
        while stack:
            current = stack.pop()
            yield current.node
            stack.extend(reversed(current.children))


class AttachPoint(msgspec.Struct, kw_only=True, frozen=True):
    """Where an incoming branch's entry node gets attached."""
    id: str
    relationship_type: str
    append_order: bool = False


class NumberedText(msgspec.Struct, kw_only=True, frozen=True):
    text: str
    index: int
    node_id: str


class GraphRecord(msgspec.Struct, kw_only=True):
    """Flat persistence shape of a ContentGraph."""
    nodes: List[ContentNode] = msgspec.field(default_factory=list)
    edges: List[EdgeData] = msgspec.field(default_factory=list)
    entry_id: Optional[str] = None


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoders/decoders, reused across the application

_encoder = msgspec.json.Encoder()
_node_decoder = msgspec.json.Decoder(type=ContentNode)
_edge_decoder = msgspec.json.Decoder(type=EdgeData)
_edge_list_decoder = msgspec.json.Decoder(type=List[EdgeData])
_record_decoder = msgspec.json.Decoder(type=GraphRecord)


def serialize_node(node: ContentNode) -> bytes:
    """Serialize a ContentNode to JSON bytes."""
    return _encoder.encode(node)


def deserialize_node(data: bytes) -> ContentNode:
    """Deserialize JSON bytes to a ContentNode."""
    return _node_decoder.decode(data)


def serialize_edge(edge: EdgeData) -> bytes:
    return _encoder.encode(edge)


def deserialize_edge(data: bytes) -> EdgeData:
    return _edge_decoder.decode(data)


def serialize_edges(edges: List[EdgeData]) -> bytes:
    return _encoder.encode(edges)


def deserialize_edges(data: bytes) -> List[EdgeData]:
    return _edge_list_decoder.decode(data)


def serialize_record(record: GraphRecord) -> bytes:
    """Serialize a GraphRecord to JSON bytes."""
    return _encoder.encode(record)


def deserialize_record(data: bytes) -> GraphRecord:
    """Deserialize JSON bytes to a GraphRecord."""
    return _record_decoder.decode(data)

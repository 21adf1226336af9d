"""
BOOKGRAPH CONTENT GRAPH - The Rust-Backed Book Store

This is the most critical file in the system. It holds a book's content
blocks and their relationships, and bridges the blocks' string ids with
rustworkx's integer indices.

Architecture (The Bridge Pattern):
  Python Layer (Business Logic)
  - Uses string ids: "abc123", "def456"
  - Calls: graph.add_nodes([...]), graph.get_branch("abc123")

  Bridge Layer (This File)
  - _node_map: Dict[str, int]  (id -> node index)
  - _inv_map: Dict[int, str]   (node index -> id)
  - _edges: Dict[str, EdgeData] (the authoritative edge store, in store order)
  - _edge_index: Dict[str, int] (edge id -> edge index, navigable edges only)

  Rust Layer (rustworkx.PyDiGraph, multigraph)
  - Node payloads are edge-free ContentNode copies
  - Edge payloads are edge ids

Invariants:
- Edges never live on stored nodes. Staged edges are moved into the edge
  store by add_nodes(); nodes handed out are copies.
- Edge ids are unique and no two edges share (source, target, type).
  Duplicates are dropped with a warning, never raised.
- An edge whose endpoint is missing may be stored ("dangling") but is not
  navigable until both endpoints exist.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

import msgspec
import polars as pl
import rustworkx as rx

from core.blocks import build_node
from core.ontology import DEFAULT_TEXT_JOIN, BlockType, RelationType, is_entity_type
from core.schemas import (
    AttachPoint,
    ContentNode,
    EdgeData,
    GraphRecord,
    IdFactory,
    NumberedText,
    RenderNode,
    as_order_key,
    edge_from_mapping,
    generate_id,
    max_ordering_key,
    order_edges,
)
from core.traversal import build_render_tree, iter_branch, walk_branch

logger = logging.getLogger(__name__)

TypeFilter = Optional[Union[str, Sequence[str]]]
EdgeLike = Union[EdgeData, Mapping[str, Any]]
NodeLike = Union[ContentNode, Mapping[str, Any]]


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class NodeNotFoundError(GraphError):
    """Raised when a node id is not in the graph."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class EdgeNotFoundError(GraphError):
    """Raised when an edge id is not in the graph."""
    def __init__(self, edge_id: str):
        self.edge_id = edge_id
        super().__init__(f"Edge not found: {edge_id}")


class MissingEndpointError(GraphError):
    """Raised when an edge names a node the graph doesn't hold."""
    def __init__(self, edge_id: Optional[str], node_id: str):
        self.edge_id = edge_id
        self.node_id = node_id
        label = f"Edge {edge_id}" if edge_id else "Attaching edge"
        super().__init__(f"{label} references missing node {node_id}")


class MissingEntryNodeError(GraphError):
    """Raised when an attach point is requested for a branch without entry node."""
    pass


# =============================================================================
# CONTENT GRAPH (The Graph Engine)
# =============================================================================

class ContentGraph:
    """
    In-memory content graph backed by rustworkx.

    All public methods accept/return string ids; the translation to/from
    integer indices is handled internally.

    Usage:
        graph = ContentGraph()

        book = ContentNode.create(type="book", book_context="b1")
        chapter = ContentNode.create(type="section", book_context="b1")
        book.create_edge(chapter.id, RelationType.BOOK_HAS_BLOCK)
        graph.add_nodes([book, chapter])

        graph.get_outgoing_edges(book.id)   # [book -> chapter]
        graph.get_branch(book.id)           # independent ContentGraph

    Thread Safety:
        NOT thread-safe. Use external locking if needed for concurrent access.
    """

    def __init__(
        self,
        nodes: Optional[Iterable[NodeLike]] = None,
        entry_id: Optional[str] = None,
        *,
        id_factory: Optional[IdFactory] = None,
        mutation_logger=None,
    ):
        """
        Initialize a graph, optionally seeded with nodes.

        Args:
            nodes: Initial nodes; their staged edges are registered
            entry_id: Id of the node the graph is entered through
            id_factory: Generates ids for created edges (uuid4 hex by default)
            mutation_logger: Optional MutationLogger receiving every mutation
        """
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=True)

        # The Bridge: bidirectional id <-> index mapping
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}

        # Edge store
        self._edges: Dict[str, EdgeData] = {}
        self._edge_seq: Dict[str, int] = {}       # edge id -> store position
        self._edge_index: Dict[str, int] = {}     # edge id -> rustworkx edge index
        self._triples: Dict[tuple, str] = {}      # (src, tgt, type) -> edge id
        self._dangling: Dict[str, None] = {}      # ordered set of edge ids
        self._next_seq = 0

        self.entry_id = entry_id
        self._id_factory: IdFactory = id_factory or generate_id
        self._mutations = mutation_logger

        if nodes:
            self.add_nodes(nodes)

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def build(
        cls,
        raw_nodes: Iterable[NodeLike],
        edges: Optional[Iterable[EdgeLike]] = None,
        entry_id: Optional[str] = None,
        require_endpoints: bool = True,
        id_factory: Optional[IdFactory] = None,
        mutation_logger=None,
    ) -> "ContentGraph":
        """
        Build a graph from flat node descriptors and edges.

        Every descriptor goes through build_node(), so type tags and
        required fields are validated.

        Raises:
            UnsupportedBlockTypeError: If a descriptor has an unknown type
            InvalidBlockConstructionError: If a descriptor is incomplete
            MissingEndpointError: If require_endpoints and an edge dangles
        """
        graph = cls(entry_id=entry_id, id_factory=id_factory, mutation_logger=mutation_logger)
        nodes = [build_node(raw, graph._id_factory) for raw in raw_nodes]
        graph.add_nodes(nodes, require_endpoints=require_endpoints)
        if edges:
            graph.add_edges(edges, require_endpoints=require_endpoints)
        return graph

    @classmethod
    def from_record(cls, record: GraphRecord, **kwargs) -> "ContentGraph":
        """Rebuild a graph from its flat record. Dangling edges are kept."""
        graph = cls(entry_id=record.entry_id, **kwargs)
        graph.add_nodes([node.clone() for node in record.nodes], require_endpoints=False)
        graph.add_edges(record.edges, require_endpoints=False)
        return graph

    def to_record(self) -> GraphRecord:
        return GraphRecord(
            nodes=self.get_all_nodes(include_edges=False),
            edges=self.edges,
            entry_id=self.entry_id,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def node_count(self) -> int:
        return self._graph.num_nodes()

    @property
    def edge_count(self) -> int:
        """Number of stored edges, dangling ones included."""
        return len(self._edges)

    @property
    def is_empty(self) -> bool:
        return self.node_count == 0

    @property
    def nodes(self) -> List[ContentNode]:
        """Copies of all nodes, in insertion order, without edges."""
        return self.get_all_nodes(include_edges=False)

    @property
    def edges(self) -> List[EdgeData]:
        """All stored edges in store order."""
        return list(self._edges.values())

    @property
    def id_factory(self) -> IdFactory:
        return self._id_factory

    @property
    def spark_type(self) -> Optional[str]:
        """The spark_type property of the entry node, if any."""
        if self.entry_id is None or self.entry_id not in self._node_map:
            return None
        return self._stored(self.entry_id).get_property("spark_type")

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_nodes(self, nodes: Iterable[NodeLike], require_endpoints: bool = True) -> None:
        """
        Add nodes and register the edges staged on them.

        Idempotent per id: a node whose id is already stored is not
        overwritten, but its staged edges are still registered.

        The staged edges are checked before anything is stored, so a
        MissingEndpointError leaves the graph unchanged. Afterwards the
        incoming nodes have no staged edges left.

        Raises:
            MissingEndpointError: If require_endpoints and a staged edge
                names a node neither stored nor in this batch
        """
        incoming = [
            node if isinstance(node, ContentNode) else build_node(node, self._id_factory)
            for node in nodes
        ]

        if require_endpoints:
            known = set(self._node_map).union(node.id for node in incoming)
            for node in incoming:
                for edge in node.edges:
                    for endpoint in (edge.source_id, edge.target_id):
                        if endpoint not in known:
                            raise MissingEndpointError(edge.id, endpoint)

        staged: List[EdgeData] = []
        for node in incoming:
            if node.id not in self._node_map:
                self._insert_node(node.clone(edges=[]))
            staged.extend(node.edges)
            node.clear_edges()

        for edge in staged:
            self.add_edge(edge, require_endpoints=False)

    def get_node_by_id(
        self,
        node_id: str,
        include_edges: Union[bool, Sequence[str]] = False,
    ) -> ContentNode:
        """
        Retrieve a copy of a node.

        Args:
            node_id: The node's id
            include_edges: True (or an empty sequence) to attach all outgoing
                edges to the copy, a sequence of edge types to attach only
                those, False for none

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        node = self._stored(node_id)
        edges: List[EdgeData] = []
        if include_edges is True:
            edges = self.get_outgoing_edges(node_id)
        elif include_edges is not False and include_edges is not None:
            edges = self.get_outgoing_edges(node_id, include_edges)
        return node.clone(edges=edges)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_map

    def update_node(self, node: ContentNode) -> None:
        """
        Replace a stored node's content.

        Edges staged on the incoming node are not registered; the edge
        store is the only place relationships are changed.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        idx = self._get_index(node.id)
        if node.edges:
            logger.debug("Discarding %d staged edges on update of %s", len(node.edges), node.id)
        self._graph[idx] = node.clone(edges=[])

        if self._mutations:
            self._mutations.log_node_updated(node.id, node.type)

    def remove_node(self, node_id: str) -> ContentNode:
        """
        Remove a node and every edge touching it.

        Returns:
            The removed node

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        idx = self._get_index(node_id)
        node = self._graph[idx]

        for edge in [e for e in self._edges.values() if e.touches(node_id)]:
            self._discard_edge(edge)

        self._graph.remove_node(idx)
        del self._node_map[node_id]
        del self._inv_map[idx]

        if self._mutations:
            self._mutations.log_node_deleted(node_id, node.type)

        return node.clone(edges=[])

    def get_all_nodes(self, include_edges: bool = True) -> List[ContentNode]:
        """Copies of all nodes in insertion order."""
        return [self.get_node_by_id(node_id, include_edges) for node_id in self._node_map]

    def get_nodes(self, type: str, include_edges: bool = False) -> List[ContentNode]:
        """Copies of all nodes of one type."""
        type = getattr(type, "value", type)
        return [
            self.get_node_by_id(node_id, include_edges)
            for node_id in self._node_map
            if self._stored(node_id).type == type
        ]

    def get_entity_nodes(self) -> List[ContentNode]:
        return [
            self.get_node_by_id(node_id)
            for node_id in self._node_map
            if is_entity_type(self._stored(node_id).type)
        ]

    def find_node(self, key: str, value: Any) -> Optional[ContentNode]:
        """First node (insertion order) whose property `key` equals value."""
        for node_id in self._node_map:
            if self._stored(node_id).has_property(key, value):
                return self.get_node_by_id(node_id)
        return None

    # =========================================================================
    # EDGE OPERATIONS
    # =========================================================================

    def add_edge(self, edge: EdgeLike, require_endpoints: bool = True) -> bool:
        """
        Add an edge to the store.

        Args:
            edge: EdgeData, or a descriptor mapping (id generated if omitted)
            require_endpoints: If False, an edge with a missing endpoint is
                stored anyway and becomes navigable once both nodes exist

        Returns:
            True if stored, False if dropped as a duplicate id or triple

        Raises:
            MissingEndpointError: If require_endpoints and an endpoint is absent
        """
        edge = edge_from_mapping(edge, self._id_factory)

        if edge.id in self._edges:
            self._drop_duplicate(edge, "duplicate edge id")
            return False
        if edge.triple in self._triples:
            self._drop_duplicate(edge, "duplicate (source, target, type)")
            return False

        if require_endpoints:
            for endpoint in (edge.source_id, edge.target_id):
                if endpoint not in self._node_map:
                    raise MissingEndpointError(edge.id, endpoint)

        self._store_edge(edge)

        if self._mutations:
            self._mutations.log_edge_created(edge.id, edge.source_id, edge.target_id, edge.type)
        return True

    def add_edges(self, edges: Iterable[EdgeLike], require_endpoints: bool = True) -> int:
        """
        Add edges one by one.

        Returns:
            Number of edges stored (duplicates excluded)
        """
        return sum(1 for edge in edges if self.add_edge(edge, require_endpoints))

    def create_edge(
        self,
        source_id: str,
        target_id: str,
        type: str,
        ordering_key: Optional[float] = None,
        directional: bool = True,
        require_endpoints: bool = True,
    ) -> Optional[EdgeData]:
        """
        Create and store a new edge with a generated id.

        Returns:
            The stored edge, or None if it was dropped as a duplicate
        """
        edge = EdgeData.create(
            source_id=source_id,
            target_id=target_id,
            type=type,
            id_factory=self._id_factory,
            ordering_key=ordering_key,
            directional=directional,
        )
        return edge if self.add_edge(edge, require_endpoints) else None

    def get_edge(self, edge_id: str) -> EdgeData:
        if edge_id not in self._edges:
            raise EdgeNotFoundError(edge_id)
        return self._edges[edge_id]

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def get_outgoing_edges(
        self,
        node_id: str,
        type_filter: TypeFilter = None,
        directional_only: bool = True,
    ) -> List[EdgeData]:
        """
        Edges a walk from node_id may follow.

        Args:
            node_id: The node to start from (unknown ids yield [])
            type_filter: Edge type or sequence of types; empty means all
            directional_only: If True, a directional edge is returned only
                when node_id is its source. Non-directional edges are
                always returned.

        Returns:
            Matching edges sorted by ordering key, ties in store order
        """
        idx = self._node_map.get(node_id)
        if idx is None:
            return []

        types = self._type_set(type_filter)
        edge_ids = {edge_id for _, _, edge_id in self._graph.out_edges(idx)}
        edge_ids.update(edge_id for _, _, edge_id in self._graph.in_edges(idx))

        edges = []
        for edge_id in sorted(edge_ids, key=self._edge_seq.__getitem__):
            edge = self._edges[edge_id]
            if types and edge.type not in types:
                continue
            if directional_only and edge.directional and edge.source_id != node_id:
                continue
            edges.append(edge)

        return order_edges(edges)

    def remove_edge(self, edge_id: str) -> EdgeData:
        """
        Remove an edge by id.

        Raises:
            EdgeNotFoundError: If edge doesn't exist
        """
        edge = self.get_edge(edge_id)
        self._discard_edge(edge)
        return edge

    def update_edge(self, edge_id: str, edge: EdgeLike) -> bool:
        """
        Replace an edge, keeping its store position.

        Returns:
            True if replaced, False if the replacement was dropped because
            another edge already has its (source, target, type)

        Raises:
            EdgeNotFoundError: If edge doesn't exist
            ValueError: If the replacement carries a different id
        """
        current = self.get_edge(edge_id)
        if isinstance(edge, Mapping):
            edge = {"id": edge_id, **edge}
        replacement = edge_from_mapping(edge, self._id_factory)

        if replacement.id != edge_id:
            raise ValueError(f"Edge ID mismatch: {edge_id} vs {replacement.id}")

        owner = self._triples.get(replacement.triple)
        if owner is not None and owner != edge_id:
            self._drop_duplicate(replacement, f"update collides with edge {owner}")
            return False

        self._replace_edge(current, replacement)

        if self._mutations:
            self._mutations.log_edge_updated(
                edge_id, replacement.source_id, replacement.target_id, replacement.type
            )
        return True

    # =========================================================================
    # TRAVERSAL
    # =========================================================================

    def get_branch(self, root_id: str, type_filter: TypeFilter = None) -> "ContentGraph":
        """
        Extract the subgraph reachable from root_id.

        Walks DFS pre-order along get_outgoing_edges(), visiting each node
        once. The result is an independent graph holding exactly the
        visited nodes and the traversed edges, entered at root_id.

        Raises:
            NodeNotFoundError: If root_id doesn't exist
        """
        branch = ContentGraph(entry_id=root_id, id_factory=self._id_factory)
        traversed: Dict[str, EdgeData] = {}

        for node, followed in walk_branch(self, root_id, self._type_list(type_filter)):
            branch._insert_node(node)
            for edge in followed:
                traversed.setdefault(edge.id, edge)

        for edge in traversed.values():
            branch.add_edge(edge, require_endpoints=False)

        return branch

    def iter_branch(self, root_id: str, type_filter: TypeFilter = None):
        """Lazy DFS pre-order iteration over the branch under root_id."""
        return iter_branch(self, root_id, self._type_list(type_filter))

    def get_branch_nodes(self, root_id: str, type_filter: TypeFilter = None) -> List[ContentNode]:
        return list(self.iter_branch(root_id, type_filter))

    def get_render_tree(self, root_id: str, type_filter: TypeFilter = None) -> RenderNode:
        """
        Ordered tree projection of the branch under root_id.

        Raises:
            NodeNotFoundError: If root_id doesn't exist
        """
        return build_render_tree(self, root_id, self._type_list(type_filter))

    def get_plain_text(self, root_id: str, join: str = DEFAULT_TEXT_JOIN) -> str:
        """Text of the text blocks under root_id, in walk order."""
        texts = [
            node.get_plain_text(join)
            for node in self.iter_branch(root_id)
            if node.type == BlockType.TEXT.value
        ]
        return join.join(texts).strip()

    def get_numbered_text(self, root_id: str) -> List[NumberedText]:
        """Non-empty text of every block in the containment branch, numbered."""
        numbered: List[NumberedText] = []
        for node in self.iter_branch(root_id, RelationType.BOOK_HAS_BLOCK.value):
            text = node.get_plain_text()
            if text:
                numbered.append(NumberedText(text=text, index=len(numbered), node_id=node.id))
        return numbered

    def has_cycle(self) -> bool:
        """True if the navigable directed edges form a cycle."""
        return not rx.is_directed_acyclic_graph(self._graph)

    # =========================================================================
    # STRUCTURAL MUTATION
    # =========================================================================

    def merge_branch(
        self,
        branch: "ContentGraph",
        attach_point: Optional[AttachPoint] = None,
    ) -> Optional[EdgeData]:
        """
        Union another graph into this one.

        Nodes already present are kept as they are; duplicate edges are
        dropped. With an attach point, one directional edge is created
        from attach_point.id to the branch's entry node. With append_order
        its key is 1 + the largest key among the attach node's outgoing
        edges of that relationship type (0 when there are none).

        Returns:
            The attaching edge, if one was created

        Raises:
            MissingEntryNodeError: If attach_point is given and the branch
                has no entry node
            MissingEndpointError: If attach_point.id is in neither graph

        The checks run before anything is copied, so a failed call leaves
        this graph unchanged.
        """
        if attach_point is not None:
            if not branch.entry_id:
                raise MissingEntryNodeError(
                    "Cannot attach a branch that has no entry node"
                )
            for endpoint in (attach_point.id, branch.entry_id):
                if endpoint not in self and endpoint not in branch:
                    raise MissingEndpointError(None, endpoint)

        self.add_nodes(branch.get_all_nodes(include_edges=False), require_endpoints=False)
        self.add_edges(branch.edges, require_endpoints=False)

        if attach_point is None:
            return None

        ordering_key = None
        if attach_point.append_order:
            siblings = self.get_outgoing_edges(attach_point.id, attach_point.relationship_type)
            ordering_key = as_order_key(max_ordering_key(siblings) + 1)

        return self.create_edge(
            attach_point.id,
            branch.entry_id,
            attach_point.relationship_type,
            ordering_key=ordering_key,
            directional=True,
        )

    def remap_parent(self, node_id: str, old_parent_id: str, new_parent_id: str) -> bool:
        """
        Move the subtree holding node_id from old_parent_id to new_parent_id.

        Walks directional edges ending at node_id upward until it finds an
        edge whose source is old_parent_id, then rewrites that edge's source
        to new_parent_id. Each ancestor is visited once.

        Returns:
            True if an edge was rewritten, False if old_parent_id was not
            found in the ancestry (or the rewrite would duplicate an edge)

        Raises:
            NodeNotFoundError: If new_parent_id doesn't exist
        """
        self._get_index(new_parent_id)

        stack = [node_id]
        visited: Set[str] = set()

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)

            parents = self._incoming_directional(current)
            for edge in parents:
                if edge.source_id == old_parent_id:
                    return self._rewrite_source(edge, new_parent_id)
            stack.extend(edge.source_id for edge in reversed(parents))

        logger.debug(
            "Remap of %s skipped: %s not found among its ancestors", node_id, old_parent_id
        )
        if self._mutations:
            self._mutations.log_remap_skipped(node_id, old_parent_id, new_parent_id)
        return False

    def _rewrite_source(self, edge: EdgeData, new_parent_id: str) -> bool:
        moved = msgspec.structs.replace(edge, source_id=new_parent_id)
        owner = self._triples.get(moved.triple)
        if owner is not None and owner != edge.id:
            self._drop_duplicate(moved, f"remap collides with edge {owner}")
            return False

        self._replace_edge(edge, moved)
        if self._mutations:
            self._mutations.log_edge_updated(moved.id, moved.source_id, moved.target_id, moved.type)
        return True

    # =========================================================================
    # PERSISTENCE (Polars-Compatible)
    # =========================================================================

    def to_polars_nodes(self) -> pl.DataFrame:
        """
        Export nodes to a Polars DataFrame.

        The properties and format bags are stored as JSON strings.
        """
        nodes = self.nodes
        return pl.DataFrame(
            {
                "id": [n.id for n in nodes],
                "type": [n.type for n in nodes],
                "book_context": [n.book_context for n in nodes],
                "schema_version": [n.schema_version for n in nodes],
                "properties": [msgspec.json.encode(n.properties).decode() for n in nodes],
                "format": [msgspec.json.encode(n.format).decode() for n in nodes],
            },
            schema=NODE_FRAME_SCHEMA,
        )

    def to_polars_edges(self) -> pl.DataFrame:
        """Export edges to a Polars DataFrame."""
        edges = self.edges
        return pl.DataFrame(
            {
                "id": [e.id for e in edges],
                "source_id": [e.source_id for e in edges],
                "target_id": [e.target_id for e in edges],
                "type": [e.type for e in edges],
                "ordering_key": [
                    None if e.ordering_key is None else float(e.ordering_key) for e in edges
                ],
                "directional": [e.directional for e in edges],
            },
            schema=EDGE_FRAME_SCHEMA,
        )

    def save_parquet(self, path: Path) -> None:
        """
        Save graph state to parquet files.

        Creates two files:
        - {path}.nodes.parquet
        - {path}.edges.parquet

        Args:
            path: Base path (without extension)
        """
        path = Path(path)
        self.to_polars_nodes().write_parquet(path.with_suffix(".nodes.parquet"))
        self.to_polars_edges().write_parquet(path.with_suffix(".edges.parquet"))

    # =========================================================================
    # INTERNAL UTILITIES
    # =========================================================================

    def _get_index(self, node_id: str) -> int:
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)
        return self._node_map[node_id]

    def _stored(self, node_id: str) -> ContentNode:
        """The stored payload itself. Never hand it out."""
        return self._graph[self._get_index(node_id)]

    def _insert_node(self, node: ContentNode) -> None:
        idx = self._graph.add_node(node)
        self._node_map[node.id] = idx
        self._inv_map[idx] = node.id

        if self._mutations:
            self._mutations.log_node_created(node.id, node.type)

        # Dangling edges waiting for this node
        for edge_id in [eid for eid in self._dangling if self._edges[eid].touches(node.id)]:
            self._attach(self._edges[edge_id])

    def _store_edge(self, edge: EdgeData) -> None:
        self._edges[edge.id] = edge
        self._edge_seq[edge.id] = self._next_seq
        self._next_seq += 1
        self._triples[edge.triple] = edge.id
        self._attach(edge)

    def _attach(self, edge: EdgeData) -> None:
        """Make an edge navigable if both endpoints exist, else park it."""
        source = self._node_map.get(edge.source_id)
        target = self._node_map.get(edge.target_id)
        if source is None or target is None:
            self._dangling[edge.id] = None
            return
        self._dangling.pop(edge.id, None)
        self._edge_index[edge.id] = self._graph.add_edge(source, target, edge.id)

    def _detach(self, edge_id: str) -> None:
        idx = self._edge_index.pop(edge_id, None)
        if idx is not None:
            self._graph.remove_edge_from_index(idx)
        self._dangling.pop(edge_id, None)

    def _replace_edge(self, current: EdgeData, replacement: EdgeData) -> None:
        """Swap an edge in place. Ids match; store position is kept."""
        self._detach(current.id)
        del self._triples[current.triple]
        self._edges[current.id] = replacement
        self._triples[replacement.triple] = replacement.id
        self._attach(replacement)

    def _discard_edge(self, edge: EdgeData) -> None:
        self._detach(edge.id)
        del self._edges[edge.id]
        del self._edge_seq[edge.id]
        del self._triples[edge.triple]

        if self._mutations:
            self._mutations.log_edge_deleted(edge.id, edge.source_id, edge.target_id, edge.type)

    def _incoming_directional(self, node_id: str) -> List[EdgeData]:
        """Directional edges ending at node_id, in store order."""
        idx = self._node_map.get(node_id)
        if idx is None:
            return []
        edge_ids = sorted(
            {edge_id for _, _, edge_id in self._graph.in_edges(idx)},
            key=self._edge_seq.__getitem__,
        )
        return [
            self._edges[edge_id] for edge_id in edge_ids
            if self._edges[edge_id].directional and self._edges[edge_id].target_id == node_id
        ]

    def _drop_duplicate(self, edge: EdgeData, reason: str) -> None:
        logger.warning(
            "Dropping edge %s (%s -> %s, %s): %s",
            edge.id, edge.source_id, edge.target_id, edge.type, reason,
        )
        if self._mutations:
            self._mutations.log_duplicate_dropped(
                edge.id, edge.source_id, edge.target_id, edge.type, reason
            )

    @staticmethod
    def _type_list(type_filter: TypeFilter) -> Optional[List[str]]:
        types = ContentGraph._type_set(type_filter)
        return sorted(types) if types else None

    @staticmethod
    def _type_set(type_filter: TypeFilter) -> Optional[Set[str]]:
        if not type_filter:
            return None
        if isinstance(type_filter, str):
            return {getattr(type_filter, "value", type_filter)}
        return {getattr(t, "value", t) for t in type_filter}

    def __len__(self) -> int:
        """Return number of nodes."""
        return self.node_count

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._node_map

    def __repr__(self) -> str:
        return f"ContentGraph(nodes={self.node_count}, edges={self.edge_count})"


NODE_FRAME_SCHEMA = {
    "id": pl.Utf8,
    "type": pl.Utf8,
    "book_context": pl.Utf8,
    "schema_version": pl.Utf8,
    "properties": pl.Utf8,
    "format": pl.Utf8,
}

EDGE_FRAME_SCHEMA = {
    "id": pl.Utf8,
    "source_id": pl.Utf8,
    "target_id": pl.Utf8,
    "type": pl.Utf8,
    "ordering_key": pl.Float64,
    "directional": pl.Boolean,
}


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_empty_graph(**kwargs) -> ContentGraph:
    """Create an empty ContentGraph instance."""
    return ContentGraph(**kwargs)


def create_graph_from_nodes(
    nodes: List[ContentNode],
    edges: Optional[List[EdgeData]] = None,
    entry_id: Optional[str] = None,
) -> ContentGraph:
    """
    Create a ContentGraph pre-populated with nodes and edges.

    Args:
        nodes: Initial nodes (their staged edges are registered)
        edges: Optional edges to add after nodes
        entry_id: Optional entry node id

    Returns:
        Populated ContentGraph
    """
    graph = ContentGraph(entry_id=entry_id)
    graph.add_nodes(nodes)
    if edges:
        graph.add_edges(edges)
    return graph

"""
Traversal and render projection over a ContentGraph.

Both walks are iterative (explicit stacks), so their depth is bounded by
the reachable subgraph and not by the interpreter's recursion limit.

- walk_branch / iter_branch: DFS pre-order with a visited SET. A node is
  yielded at most once; revisits are pruned, never raised.
- build_render_tree: ordered tree. The guard is the current root-to-leaf
  PATH: a node already on the path is rendered as a childless leaf, while
  the same node reached through two different paths is rendered twice.

Edges are followed as get_outgoing_edges() returns them (type filtered,
directional edges from their source only, ordered). A non-directional edge
leads to its other endpoint.
"""
from typing import TYPE_CHECKING, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from core.schemas import ContentNode, EdgeData, RenderNode

if TYPE_CHECKING:
    from core.graph_db import ContentGraph


def walk_branch(
    graph: "ContentGraph",
    root_id: str,
    type_filter: Optional[Sequence[str]] = None,
) -> Iterator[Tuple[ContentNode, List[EdgeData]]]:
    """
    Walk the branch under root_id in DFS pre-order.

    Yields:
        (node, edges) pairs: a copy of each reachable node and the edges
        followed out of it, in order

    Raises:
        NodeNotFoundError: If root_id, or a node an edge leads to, is missing
    """
    stack: List[str] = [root_id]
    visited = set()

    while stack:
        node_id = stack.pop()
        if node_id in visited:
            continue
        visited.add(node_id)

        node = graph.get_node_by_id(node_id)
        edges = graph.get_outgoing_edges(node_id, type_filter)
        yield node, edges

        # Reversed so the first edge is popped first
        stack.extend(edge.other_end(node_id) for edge in reversed(edges))


def iter_branch(
    graph: "ContentGraph",
    root_id: str,
    type_filter: Optional[Sequence[str]] = None,
) -> Iterator[ContentNode]:
    """Lazy DFS pre-order sequence of the nodes reachable from root_id."""
    for node, _ in walk_branch(graph, root_id, type_filter):
        yield node


def build_render_tree(
    graph: "ContentGraph",
    root_id: str,
    type_filter: Optional[Sequence[str]] = None,
) -> RenderNode:
    """
    Project the graph under root_id into an ordered tree.

    Every projected node is a copy carrying its type-filtered edges.
    Children keep the order of get_outgoing_edges() and are numbered
    0..n-1 in `position`.
    """
    include = list(type_filter or [])

    root = RenderNode(node=graph.get_node_by_id(root_id, include), position=0)
    stack: List[Tuple[RenderNode, FrozenSet[str]]] = [(root, frozenset([root_id]))]

    while stack:
        current, path = stack.pop()
        node_id = current.node.id

        for position, edge in enumerate(graph.get_outgoing_edges(node_id, type_filter)):
            child_id = edge.other_end(node_id)
            child = RenderNode(node=graph.get_node_by_id(child_id, include), position=position)
            current.children.append(child)

            if child_id in path:
                continue  # cycle: leave as leaf
            stack.append((child, path | {child_id}))

    return root

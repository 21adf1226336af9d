"""
BOOKGRAPH CORE - Central exports for core functionality.

This module provides access to:
- The content graph engine (ContentGraph) and its errors
- Node, edge and projection schemas
- Typed node construction (build_node)
"""

from core.graph_db import (
    ContentGraph,
    GraphError,
    NodeNotFoundError,
    EdgeNotFoundError,
    MissingEndpointError,
    MissingEntryNodeError,
)
from core.schemas import (
    ContentNode,
    EdgeData,
    RenderNode,
    AttachPoint,
    GraphRecord,
    order_edges,
)
from core.blocks import (
    build_node,
    BlockError,
    UnsupportedBlockTypeError,
    InvalidBlockConstructionError,
)

__all__ = [
    # Graph
    "ContentGraph",
    "GraphError",
    "NodeNotFoundError",
    "EdgeNotFoundError",
    "MissingEndpointError",
    "MissingEntryNodeError",
    # Schemas
    "ContentNode",
    "EdgeData",
    "RenderNode",
    "AttachPoint",
    "GraphRecord",
    "order_edges",
    # Blocks
    "build_node",
    "BlockError",
    "UnsupportedBlockTypeError",
    "InvalidBlockConstructionError",
]

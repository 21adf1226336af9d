"""
Typed construction of content nodes.

build_node() is the single entry point that turns a generic node
descriptor into a ContentNode. It dispatches on the descriptor's type tag
through _BUILDERS, which covers every BlockType; all EntityType kinds share
one builder. Each builder enforces the required fields of its kind.
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional

import msgspec

from core.ontology import BlockType, TextSize, is_entity_type
from core.schemas import ContentNode, IdFactory

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class BlockError(Exception):
    """Base exception for node construction."""
    pass


class UnsupportedBlockTypeError(BlockError):
    """Raised when a descriptor names a type outside the closed set."""
    def __init__(self, block_type: Any):
        self.block_type = block_type
        super().__init__(f"Block type {block_type!r} is not supported")


class InvalidBlockConstructionError(BlockError):
    """Raised when a descriptor is missing a field its kind requires."""
    def __init__(self, block_type: str, reason: str):
        self.block_type = block_type
        self.reason = reason
        super().__init__(f"Invalid {block_type} block: {reason}")


# =============================================================================
# FIELD CHECKS
# =============================================================================

def _has_items(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0


def _require_text(params: Mapping[str, Any], block_type: str) -> None:
    properties = params.get("properties") or {}
    if not _has_items(properties.get("text")):
        raise InvalidBlockConstructionError(block_type, "requires non-empty text")


# =============================================================================
# BUILDERS
# =============================================================================

Builder = Callable[[Mapping[str, Any], Optional[IdFactory]], ContentNode]


def _construct(params: Mapping[str, Any], id_factory: Optional[IdFactory]) -> ContentNode:
    data = dict(params)
    return ContentNode.create(
        type=data.pop("type"),
        book_context=data.pop("book_context", ""),
        id_factory=id_factory,
        id=data.pop("id", None),
        properties=data.pop("properties", None),
        format=data.pop("format", None),
        schema_version=data.pop("schema_version", None),
        edges=data.pop("edges", None),
    )


def build_text_node(params, id_factory=None) -> ContentNode:
    """Text blocks need text and a declared text size."""
    _require_text(params, BlockType.TEXT.value)
    text_size = (params.get("format") or {}).get("text_size")
    if text_size is None:
        raise InvalidBlockConstructionError(BlockType.TEXT.value, "requires a text size")
    try:
        TextSize(text_size)
    except ValueError:
        raise InvalidBlockConstructionError(
            BlockType.TEXT.value, f"unknown text size {text_size!r}"
        )
    return _construct(params, id_factory)


def build_image_node(params, id_factory=None) -> ContentNode:
    """Image blocks need at least one source path."""
    properties = params.get("properties") or {}
    if not _has_items(properties.get("source")):
        raise InvalidBlockConstructionError(BlockType.IMAGE.value, "requires a source")
    return _construct(params, id_factory)


def build_entity_node(params, id_factory=None) -> ContentNode:
    _require_text(params, str(params.get("type")))
    return _construct(params, id_factory)


def build_plain_node(params, id_factory=None) -> ContentNode:
    return _construct(params, id_factory)


_BUILDERS: Dict[BlockType, Builder] = {
    BlockType.BOOK: build_plain_node,
    BlockType.SECTION: build_plain_node,
    BlockType.TEXT: build_text_node,
    BlockType.LIST_ITEM: build_plain_node,
    BlockType.ORDERED_LIST: build_plain_node,
    BlockType.UNORDERED_LIST: build_plain_node,
    BlockType.FIGURE: build_plain_node,
    BlockType.IMAGE: build_image_node,
    BlockType.TABLE: build_plain_node,
    BlockType.TABLE_ROW: build_plain_node,
    BlockType.TABLE_CELL: build_plain_node,
    BlockType.SPARK: build_plain_node,
}

# Adding a BlockType without a builder is a programming error
_missing = set(BlockType) - set(_BUILDERS)
if _missing:
    raise RuntimeError(f"No builder registered for {sorted(m.value for m in _missing)}")


def build_node(
    params: Any,
    id_factory: Optional[IdFactory] = None,
) -> ContentNode:
    """
    Build a ContentNode from a generic descriptor.

    Args:
        params: Mapping (or ContentNode) with "type" and optionally "id",
            "properties", "format", "book_context", "schema_version", "edges"
        id_factory: Generates the id when the descriptor has none

    Returns:
        A new ContentNode; descriptor edges are staged on it

    Raises:
        UnsupportedBlockTypeError: If the type tag is not a known kind
        InvalidBlockConstructionError: If a required field is missing
    """
    if isinstance(params, ContentNode):
        params = msgspec.structs.asdict(params)

    raw_type = params.get("type")
    type_str = getattr(raw_type, "value", raw_type)

    if isinstance(type_str, str) and is_entity_type(type_str):
        return build_entity_node(params, id_factory)

    try:
        block_type = BlockType(type_str)
    except (ValueError, TypeError):
        logger.error("Block type %r not supported", raw_type)
        raise UnsupportedBlockTypeError(raw_type)

    return _BUILDERS[block_type](params, id_factory)

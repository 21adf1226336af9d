"""
BOOKGRAPH ONTOLOGY - The Dictionary of Book Content

If schemas.py is the Grammar (how we structure a node or an edge),
ontology.py is the Dictionary (the words we can use).

This module defines:
- Enums: The vocabulary (BlockType, EntityType, RelationType, EntityRelation)
- Format vocabulary (TextSize)
- Navigation vocabulary (CoreConceptMarker, MatterType, SparkType)
- default_relationships: which edge types a block kind is walked through

Every set here is CLOSED. Node construction rejects tags outside
BlockType/EntityType; the graph engine itself treats edge types as opaque
strings and only compares them.
"""
from enum import Enum
from typing import List, Set


SCHEMA_VERSION = "0.0.2"
DEFAULT_TEXT_JOIN = "\n\n"


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class BlockType(str, Enum):
    """Structural content kinds. Loosely maps back to markup elements."""
    BOOK = "book"                      # Seed node of a book (one per book)
    SECTION = "section"                # Chapter, part, appendix...
    TEXT = "text"                      # Paragraph or heading
    LIST_ITEM = "list_item"
    ORDERED_LIST = "ordered_list"
    UNORDERED_LIST = "unordered_list"
    FIGURE = "figure"
    IMAGE = "image"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"
    SPARK = "spark"                    # Derived artifact (booksplanation, deck)


class EntityType(str, Enum):
    """Semantic entity kinds extracted from the text."""
    CORE_CONCEPT = "core-concept"
    KEY_IDEA = "key-idea"
    ANECDOTE = "anecdote"
    CASE_STUDY = "case-study"
    APPLICATION = "application"
    TOOL = "tool"


class RelationType(str, Enum):
    """Types of edges between blocks."""
    BOOK_HAS_BLOCK = "book-has-block"      # Containment: any base block -> base block
    HAS_SPARK = "has-spark"                # Section -> spark
    HAS_CORE_CONCEPT = "has-core-concept"  # Section/book -> core-concept entity
    REFERENCES = "references"              # Entity -> any block
    HAS_ENTITY = "has-entity"              # Section -> entity
    HAS_BLOCK = "has-block"                # Generic: any block -> any block


class EntityRelation(str, Enum):
    """Edges between entities (target is a key idea or core concept)."""
    SUPPORTS = "supports"            # key-idea -> key-idea/core-concept
    ILLUSTRATES = "illustrates"      # anecdote -> ...
    DEMONSTRATES = "demonstrates"    # case-study -> ...
    GUIDES = "guides"                # application -> ...
    APPLIES = "applies"              # tool -> ...


class TextSize(str, Enum):
    """Declared size of a text-bearing block."""
    TEXT = "text"
    SUB_HEADER = "sub_header"
    HEADER = "header"
    SUB_SUB_HEADER = "sub_sub_header"


class SparkType(str, Enum):
    BOOKSPLANATION = "booksplanation"
    DECK = "deck"


class MatterType(str, Enum):
    """General location of content in the book."""
    FRONT = "front"
    BODY = "body"
    BACK = "back"


class CoreConceptMarker(str, Enum):
    """
    Navigation marker for core-concept grouping.

    YES starts a group, INHERIT joins the running group, IGNORE is skipped.
    """
    YES = "yes"
    INHERIT = "inherit"
    IGNORE = "ignore"


# =============================================================================
# LOOKUPS
# =============================================================================

BLOCK_TYPES: Set[str] = {bt.value for bt in BlockType}
ENTITY_TYPES: Set[str] = {et.value for et in EntityType}
RELATION_TYPES: Set[str] = (
    {rt.value for rt in RelationType} | {er.value for er in EntityRelation}
)


def is_entity_type(type_str: str) -> bool:
    """Check if a type tag names a semantic entity."""
    return type_str in ENTITY_TYPES


def is_known_type(type_str: str) -> bool:
    """Check if a type tag belongs to the closed set of content kinds."""
    return type_str in BLOCK_TYPES or type_str in ENTITY_TYPES


def default_relationships(type_str: str) -> List[str]:
    """
    Edge types a block of this kind is normally walked through.

    Entities reference blocks, sparks own their blocks generically,
    everything else is part of the book's containment tree.
    """
    if is_entity_type(type_str):
        return [RelationType.REFERENCES.value]
    if type_str == BlockType.SPARK.value:
        return [RelationType.HAS_BLOCK.value]
    return [RelationType.BOOK_HAS_BLOCK.value]

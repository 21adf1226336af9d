"""
BOOKGRAPH BOOK - Navigation over a book's content graph

A Book wraps the ContentGraph of one book together with its metadata and
navigation index. It contributes no graph algorithms of its own: sections
are found with property lookups, core concepts are assembled with
get_branch() and merge_branch().

Core-concept grouping:
    A nav item marked "yes" starts a group. Following items marked
    "inherit" join it, items marked "ignore" (or unmarked) are skipped,
    and the next "yes" ends it. Each member's containment branch is merged
    into the running graph, appended after the last node of its walk.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import msgspec

from core.graph_db import ContentGraph, TypeFilter
from core.ontology import (
    SCHEMA_VERSION,
    BlockType,
    CoreConceptMarker,
    RelationType,
)
from core.schemas import AttachPoint, ContentNode, GraphRecord, IdFactory, generate_id
from infrastructure.config import BookgraphConfig
from infrastructure.logger import LoggerConfig, MutationLogger

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class BookError(Exception):
    """Base exception for book navigation."""
    pass


class MissingBookNodeError(BookError):
    """Raised when a book record holds no node of type 'book'."""
    def __init__(self):
        super().__init__("A book node is required to open a book; none found")


class SectionNotFoundError(BookError):
    """Raised when no section node matches a nav item."""
    def __init__(self, key: str, value: Optional[str]):
        self.key = key
        self.value = value
        super().__init__(f"Could not find node with {key} {value!r}")


class NavItemNotFoundError(BookError):
    def __init__(self, order: int):
        self.order = order
        super().__init__(f"Nav item order {order!r} not found")


class NotACoreConceptError(BookError):
    def __init__(self, order: int, marker: Optional[str]):
        self.order = order
        self.marker = marker
        super().__init__(f"Nav item {order!r} is {marker!r}, not a core concept")


# =============================================================================
# RECORD SCHEMAS
# =============================================================================

class NavItem(msgspec.Struct, kw_only=True):
    """One entry of the book's navigation index."""
    order: int                                  # Sequence in the book
    level: int = 0                              # Part 0, chapter 1, subchapter 2...
    label: str = ""
    href: str = ""
    full_href: str = msgspec.field(default="", name="fullHref")
    title: Optional[str] = None
    epub_id: Optional[str] = None
    anchor: Optional[str] = None
    matter: Optional[str] = None                # MatterType value
    identifier: Optional[str] = None            # "2" in "Chapter 2"
    is_core_concept: Optional[str] = msgspec.field(default=None, name="isCoreConcept")


class Isbn(msgspec.Struct, kw_only=True):
    type: str
    value: Union[int, str]


class BookData(msgspec.Struct, kw_only=True):
    """Book metadata."""
    title: List[str] = msgspec.field(default_factory=list)
    subtitle: List[str] = msgspec.field(default_factory=list)
    creators: List[str] = msgspec.field(default_factory=list)
    publisher: Optional[str] = None
    imprint: Optional[str] = None
    description: List[str] = msgspec.field(default_factory=list)
    cover_image: Optional[str] = None
    nav: List[NavItem] = msgspec.field(default_factory=list)
    creation_date: Optional[str] = None
    isbn: List[Isbn] = msgspec.field(default_factory=list)
    lcsh: List[str] = msgspec.field(default_factory=list)
    cover_image_theme: Optional[str] = None
    genre: Optional[str] = None


class BookRecord(msgspec.Struct, kw_only=True):
    """
    Storable form of a book.

    `graph`, when present, is authoritative; otherwise the graph is built
    from `book_nodes` and the edges staged on them.
    """
    book_hash: str
    data: BookData = msgspec.field(default_factory=BookData)
    id: Optional[str] = None
    version: str = SCHEMA_VERSION
    book_nodes: List[ContentNode] = msgspec.field(default_factory=list)
    graph: Optional[GraphRecord] = None


_record_decoder = msgspec.json.Decoder(type=BookRecord)
_encoder = msgspec.json.Encoder()


@dataclass
class Section:
    nav_item: NavItem
    node: ContentNode


@dataclass
class CoreConcept:
    nav_item: NavItem
    graph: ContentGraph


# =============================================================================
# BOOK (The Facade)
# =============================================================================

class Book:
    """
    A book: metadata, navigation and its content graph.

    Usage:
        book = Book(record)
        for section in book.get_sections():
            print(section.nav_item.label, section.node.id)

        concept = book.get_core_concept(order=3)
        text = concept.get_plain_text(concept.entry_id)
    """

    def __init__(
        self,
        record: BookRecord,
        *,
        config: Optional[BookgraphConfig] = None,
        id_factory: Optional[IdFactory] = None,
        mutation_logger: Optional[MutationLogger] = None,
    ):
        """
        Open a book record.

        Without a mutation_logger, one is created from the logging settings.
        A stored graph is restored with its dangling edges; flat book_nodes
        follow graph.require_endpoints.

        Raises:
            MissingBookNodeError: If no node of type 'book' is in the record
            UnsupportedBlockTypeError: If a node has an unknown type
            InvalidBlockConstructionError: If a node is incomplete
        """
        self.config = config or BookgraphConfig()
        self._id = record.id or (id_factory or generate_id)()
        self._book_hash = record.book_hash
        self._version = record.version
        self._data = record.data
        self.mutations = mutation_logger or MutationLogger(
            LoggerConfig.from_settings(self.config.logging)
        )

        source = record.graph.nodes if record.graph is not None else record.book_nodes
        book_node = next((n for n in source if n.type == BlockType.BOOK.value), None)
        if book_node is None:
            raise MissingBookNodeError()
        self._book_node_id = book_node.id

        if record.graph is not None:
            self._graph = ContentGraph.build(
                record.graph.nodes,
                record.graph.edges,
                entry_id=record.graph.entry_id or book_node.id,
                require_endpoints=False,
                id_factory=id_factory,
                mutation_logger=self.mutations,
            )
        else:
            self._graph = ContentGraph.build(
                record.book_nodes,
                entry_id=book_node.id,
                require_endpoints=self.config.graph.require_endpoints,
                id_factory=id_factory,
                mutation_logger=self.mutations,
            )

    @classmethod
    def from_json(cls, data: bytes, **kwargs) -> "Book":
        """Open a book from its JSON record."""
        return cls(_record_decoder.decode(data), **kwargs)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def id(self) -> str:
        return self._id

    @property
    def book_hash(self) -> str:
        return self._book_hash

    @property
    def version(self) -> str:
        return self._version

    @property
    def data(self) -> BookData:
        return self._data

    @property
    def graph(self) -> ContentGraph:
        return self._graph

    @property
    def book_node_id(self) -> str:
        """Id of the seed node of type 'book'."""
        return self._book_node_id

    @property
    def nav(self) -> List[NavItem]:
        return self._data.nav

    def set_data(self, data: BookData) -> None:
        self._data = msgspec.structs.replace(data)

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def get_sections(self) -> List[Section]:
        """
        Resolve every nav item to its seed node.

        Items are matched by the node's `anchor` property, or by `epub_id`
        when the item has no anchor.

        Raises:
            BookError: If a nav item has neither anchor nor epub_id
            SectionNotFoundError: If no node matches
        """
        if not self.nav:
            logger.warning("No nav data found for book %s; no sections to resolve", self.id)
            return []

        sections = []
        for item in self.nav:
            if item.anchor:
                key, value = "anchor", item.anchor
            elif item.epub_id:
                key, value = "epub_id", item.epub_id
            else:
                raise BookError(f"No anchor or epub_id for nav item {item.title or item.label!r}")

            node = self._graph.find_node(key, value)
            if node is None:
                logger.error("Could not find node with %s %r", key, value)
                raise SectionNotFoundError(key, value)
            sections.append(Section(nav_item=item, node=node))

        return sections

    def get_nav_node(self, nav_item: NavItem) -> ContentNode:
        """
        Seed section node of a nav item.

        With both anchor and epub_id on the item, the section must match
        both. With only an anchor, the anchor must match. Otherwise the
        epub_id must match on a section that has no anchor.

        Raises:
            SectionNotFoundError: If no section matches
        """
        for section in self._graph.get_nodes(BlockType.SECTION):
            anchor = section.get_property("anchor")
            epub_id = section.get_property("epub_id")
            if nav_item.anchor and nav_item.epub_id:
                if anchor == nav_item.anchor and epub_id == nav_item.epub_id:
                    return section
            elif nav_item.anchor:
                if anchor == nav_item.anchor:
                    return section
            elif epub_id == nav_item.epub_id and not anchor:
                return section

        key = "anchor" if nav_item.anchor else "epub_id"
        raise SectionNotFoundError(key, getattr(nav_item, key))

    def get_nav_node_by_order(self, order: int) -> ContentNode:
        """
        Raises:
            NavItemNotFoundError: If no nav item has this order
            SectionNotFoundError: If its section can't be found
        """
        return self.get_nav_node(self._find_nav_item(order)[1])

    def get_core_concept(self, order: int) -> ContentGraph:
        """
        Merged containment graph of the core concept starting at `order`.

        Raises:
            NavItemNotFoundError: If no nav item has this order
            NotACoreConceptError: If that item is not marked "yes"
            SectionNotFoundError: If a member's section can't be found
        """
        index, start = self._find_nav_item(order)
        if start.is_core_concept != CoreConceptMarker.YES:
            raise NotACoreConceptError(order, start.is_core_concept)

        group = [start]
        for item in self.nav[index + 1:]:
            if item.is_core_concept == CoreConceptMarker.YES:
                break
            if item.is_core_concept == CoreConceptMarker.INHERIT:
                group.append(item)

        containment = RelationType.BOOK_HAS_BLOCK.value
        merged: Optional[ContentGraph] = None
        for item in group:
            branch = self._graph.get_branch(self.get_nav_node(item).id, containment)
            if merged is None:
                merged = branch
                continue
            last = merged.get_branch_nodes(merged.entry_id)[-1]
            merged.merge_branch(
                branch,
                AttachPoint(id=last.id, relationship_type=containment, append_order=True),
            )

        return merged

    def get_core_concepts(self) -> List[CoreConcept]:
        """Every core concept of the book, in nav order."""
        return [
            CoreConcept(nav_item=item, graph=self.get_core_concept(item.order))
            for item in self.nav
            if item.is_core_concept == CoreConceptMarker.YES
        ]

    def _find_nav_item(self, order: int):
        for index, item in enumerate(self.nav):
            if item.order == order:
                return index, item
        raise NavItemNotFoundError(order)

    # =========================================================================
    # GRAPH ACCESS
    # =========================================================================

    def get_spark_branches(self) -> List[ContentGraph]:
        """The generic-containment branch of every spark node."""
        return [
            self._graph.get_branch(spark.id, RelationType.HAS_BLOCK.value)
            for spark in self._graph.get_nodes(BlockType.SPARK)
        ]

    def get_branch(self, node_id: str, type_filter: TypeFilter = None) -> ContentGraph:
        return self._graph.get_branch(node_id, type_filter)

    def get_node_by_id(
        self,
        node_id: str,
        include_edges: Union[bool, Sequence[str]] = False,
    ) -> ContentNode:
        return self._graph.get_node_by_id(node_id, include_edges)

    def update_node(self, node: ContentNode) -> None:
        self._graph.update_node(node)

    def get_plain_text(self, join: Optional[str] = None) -> str:
        """Plain text of the whole book, walked from the book node."""
        if join is None:
            join = self.config.graph.text_join
        return self._graph.get_plain_text(self._book_node_id, join)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def to_record(self) -> BookRecord:
        return BookRecord(
            id=self.id,
            book_hash=self.book_hash,
            version=self.version,
            data=self.data,
            book_nodes=self._graph.get_all_nodes(include_edges=False),
            graph=self._graph.to_record(),
        )

    def to_json(self) -> bytes:
        return _encoder.encode(self.to_record())

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, graph={self._graph!r})"

"""
BOOKGRAPH DOMAIN LAYER

This module provides:
- Book: navigation, core-concept grouping and plain text over a book graph

Usage:
    from domain import Book

    book = Book.from_json(Path("book.json").read_bytes())
    for concept in book.get_core_concepts():
        print(concept.nav_item.label, concept.graph.node_count)
"""
from .book import (
    Book,
    BookData,
    BookRecord,
    NavItem,
    Section,
    CoreConcept,
    BookError,
    MissingBookNodeError,
    SectionNotFoundError,
    NavItemNotFoundError,
    NotACoreConceptError,
)

__all__ = [
    "Book",
    "BookData",
    "BookRecord",
    "NavItem",
    "Section",
    "CoreConcept",
    "BookError",
    "MissingBookNodeError",
    "SectionNotFoundError",
    "NavItemNotFoundError",
    "NotACoreConceptError",
]

"""
Pytest configuration and shared fixtures for the Bookgraph test suite.
"""
import itertools
import sys
from pathlib import Path

import msgspec
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def text_node(node_id, *text, edges=None):
    """Descriptor of a text block with a valid text size."""
    return {
        "id": node_id,
        "type": "text",
        "book_context": "book-1",
        "properties": {"text": list(text)},
        "format": {"text_size": "text"},
        "edges": edges or [],
    }


def containment(edge_id, source_id, target_id, order):
    return {
        "id": edge_id,
        "source_id": source_id,
        "target_id": target_id,
        "type": "book-has-block",
        "ordering_key": order,
        "directional": True,
    }


@pytest.fixture
def id_factory():
    """Deterministic id generator: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def fresh_graph(id_factory):
    """Provide a fresh ContentGraph with deterministic ids."""
    from core.graph_db import ContentGraph
    return ContentGraph(id_factory=id_factory)


@pytest.fixture
def hello_graph():
    """The book -> section -> "Hello" text graph."""
    from core.graph_db import ContentGraph

    nodes = [
        {"id": "R", "type": "book"},
        {"id": "S", "type": "section"},
        text_node("T1", "Hello"),
    ]
    edges = [
        containment("e1", "R", "S", 0),
        containment("e2", "S", "T1", 0),
    ]
    return ContentGraph.build(nodes, edges, entry_id="R")


@pytest.fixture
def book_record_data():
    """
    Raw book record with four nav-linked sections and one spark.

    Nav markers: 1 yes, 2 inherit, 3 ignore, 4 yes.
    """
    return {
        "id": "omnibook-1",
        "book_hash": "hash-1",
        "version": "0.0.2",
        "data": {
            "title": ["A Sample Book"],
            "creators": ["Ann Author"],
            "nav": [
                {"order": 1, "level": 1, "label": "Chapter 1", "href": "c1.xhtml#ch1",
                 "fullHref": "OEBPS/c1.xhtml#ch1", "anchor": "ch1", "epub_id": "e1",
                 "isCoreConcept": "yes"},
                {"order": 2, "level": 1, "label": "Chapter 2", "href": "c2.xhtml",
                 "fullHref": "OEBPS/c2.xhtml", "epub_id": "e2", "isCoreConcept": "inherit"},
                {"order": 3, "level": 1, "label": "Chapter 3", "href": "c3.xhtml#ch3",
                 "fullHref": "OEBPS/c3.xhtml#ch3", "anchor": "ch3", "epub_id": "e3",
                 "isCoreConcept": "ignore"},
                {"order": 4, "level": 1, "label": "Chapter 4", "href": "c4.xhtml#ch4",
                 "fullHref": "OEBPS/c4.xhtml#ch4", "anchor": "ch4", "epub_id": "e4",
                 "isCoreConcept": "yes"},
            ],
        },
        "book_nodes": [
            {"id": "book", "type": "book", "book_context": "book-1", "edges": [
                containment("b-s1", "book", "sec-1", 0),
                containment("b-s2", "book", "sec-2", 1),
                containment("b-s3", "book", "sec-3", 2),
                containment("b-s4", "book", "sec-4", 3),
            ]},
            {"id": "sec-1", "type": "section", "book_context": "book-1",
             "properties": {"anchor": "ch1", "epub_id": "e1"}, "edges": [
                containment("s1-t1", "sec-1", "t1", 0),
                containment("s1-t2", "sec-1", "t2", 1),
            ]},
            {"id": "sec-2", "type": "section", "book_context": "book-1",
             "properties": {"epub_id": "e2"}, "edges": [
                containment("s2-t3", "sec-2", "t3", 0),
            ]},
            {"id": "sec-3", "type": "section", "book_context": "book-1",
             "properties": {"anchor": "ch3", "epub_id": "e3"}, "edges": [
                containment("s3-t4", "sec-3", "t4", 0),
            ]},
            {"id": "sec-4", "type": "section", "book_context": "book-1",
             "properties": {"anchor": "ch4", "epub_id": "e4"}, "edges": [
                containment("s4-t5", "sec-4", "t5", 0),
            ]},
            text_node("t1", "Chapter one"),
            text_node("t2", "First idea"),
            text_node("t3", "Second chapter"),
            text_node("t4", "Third chapter"),
            text_node("t5", "Fourth"),
            {"id": "spark-1", "type": "spark", "book_context": "book-1",
             "properties": {"spark_type": "booksplanation"}, "edges": [
                {"id": "sp-t", "source_id": "spark-1", "target_id": "t-sp",
                 "type": "has-block", "ordering_key": 0, "directional": True},
            ]},
            text_node("t-sp", "Spark text"),
        ],
    }


@pytest.fixture
def book_record(book_record_data):
    from domain.book import BookRecord
    return msgspec.convert(book_record_data, type=BookRecord)


@pytest.fixture
def sample_book(book_record, id_factory):
    from domain.book import Book
    return Book(book_record, id_factory=id_factory)

"""
Unit tests for core/ontology.py - content vocabulary
"""
import pytest

from core.ontology import (
    BlockType,
    EntityRelation,
    RELATION_TYPES,
    RelationType,
    default_relationships,
    is_entity_type,
    is_known_type,
)


def test_type_sets_are_disjoint():
    assert not any(is_entity_type(bt.value) for bt in BlockType)
    assert is_entity_type("core-concept")
    assert is_known_type("table_cell")
    assert not is_known_type("paragraph")


def test_relation_types_use_hyphens():
    assert RelationType.BOOK_HAS_BLOCK.value in RELATION_TYPES
    assert EntityRelation.SUPPORTS.value in RELATION_TYPES
    assert all("_" not in rt for rt in RELATION_TYPES)


@pytest.mark.parametrize("type_str, expected", [
    ("key-idea", ["references"]),
    ("spark", ["has-block"]),
    ("section", ["book-has-block"]),
    ("text", ["book-has-block"]),
])
def test_default_relationships(type_str, expected):
    assert default_relationships(type_str) == expected

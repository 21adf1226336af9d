"""
Unit tests for infrastructure/logger.py - mutation logging

Tests:
- Events recorded by a ContentGraph
- Ring buffer limits and queries
- Newline-delimited JSON file log
- Subscribers
"""
import logging
from datetime import datetime, timezone

from core.graph_db import ContentGraph
from core.schemas import ContentNode, EdgeData
from infrastructure.config import LoggingSettings
from infrastructure.logger import (
    EventBuffer,
    FileLogger,
    LoggerConfig,
    MutationEvent,
    MutationLogger,
    MutationType,
    configure_logging,
)


def section(node_id):
    return ContentNode.create(type="section", id=node_id)


def edge(edge_id, source, target):
    return EdgeData(id=edge_id, source_id=source, target_id=target, type="book-has-block")


# =============================================================================
# GRAPH INTEGRATION TESTS
# =============================================================================

def test_graph_mutations_are_recorded():
    """
    Validate that a ContentGraph reports its mutations.

    Verifies:
    - Node and edge creation are recorded in order
    - Dropped duplicates and deletions are recorded
    """
    mutations = MutationLogger()
    graph = ContentGraph([section("a"), section("b")], mutation_logger=mutations)

    graph.add_edge(edge("e1", "a", "b"))
    graph.add_edge(edge("e2", "a", "b"))
    graph.remove_node("b")

    types = [e.mutation_type for e in mutations.get_recent_events()]
    assert types == [
        MutationType.NODE_CREATED.value,
        MutationType.NODE_CREATED.value,
        MutationType.EDGE_CREATED.value,
        MutationType.DUPLICATE_DROPPED.value,
        MutationType.EDGE_DELETED.value,
        MutationType.NODE_DELETED.value,
    ]
    assert [e.sequence for e in mutations.get_recent_events()] == [1, 2, 3, 4, 5, 6]


def test_remap_events():
    mutations = MutationLogger()
    graph = ContentGraph([section("a"), section("b"), section("c")], mutation_logger=mutations)
    graph.add_edge(edge("e1", "a", "b"))

    graph.remap_parent("b", "a", "c")
    graph.remap_parent("b", "a", "c")

    updated = mutations.get_events_by_type(MutationType.EDGE_UPDATED)
    skipped = mutations.get_events_by_type(MutationType.REMAP_SKIPPED)
    assert [(e.edge_id, e.source_id) for e in updated] == [("e1", "c")]
    assert [(e.node_id, e.source_id, e.target_id) for e in skipped] == [("b", "a", "c")]


def test_events_for_node_include_edges():
    mutations = MutationLogger()
    graph = ContentGraph([section("a"), section("b")], mutation_logger=mutations)
    graph.add_edge(edge("e1", "a", "b"))

    timeline = mutations.get_node_timeline("b")

    assert [entry["type"] for entry in timeline] == [
        MutationType.NODE_CREATED.value,
        MutationType.EDGE_CREATED.value,
    ]


# =============================================================================
# BUFFER / FILE / SUBSCRIBER TESTS
# =============================================================================

def test_event_buffer_is_bounded():
    buffer = EventBuffer(max_size=2)
    for n in range(3):
        buffer.append(MutationEvent(timestamp="t", sequence=n, mutation_type="NODE_CREATED"))

    assert len(buffer) == 2
    assert [e.sequence for e in buffer.get_last(5)] == [1, 2]
    assert buffer.get_last(0) == []


def test_file_logger_writes_jsonl(tmp_path):
    """
    Validate the newline-delimited JSON log.

    Verifies:
    - Events written through a MutationLogger land in today's file
    - read_log decodes them back
    - Corrupt lines are skipped
    """
    config = LoggerConfig(enable_file_log=True, log_path=tmp_path)
    with MutationLogger(config) as mutations:
        mutations.log_node_created("n1", "section")
        mutations.log_node_deleted("n1", "section")

    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    log_file = tmp_path / f"mutations_{today}.jsonl"
    with open(log_file, "ab") as f:
        f.write(b"{not json\n")

    events = FileLogger(tmp_path).read_log(today)

    assert [e.mutation_type for e in events] == ["NODE_CREATED", "NODE_DELETED"]
    assert FileLogger(tmp_path).read_log("1999-01-01") == []


def test_subscribers_receive_events():
    mutations = MutationLogger()
    received = []
    mutations.subscribe(received.append)

    mutations.log_node_created("n1", "section")
    mutations.unsubscribe(received.append)
    mutations.log_node_created("n2", "section")

    assert [e.node_id for e in received] == ["n1"]


def test_failing_subscriber_is_logged(caplog):
    mutations = MutationLogger()

    def broken(event):
        raise RuntimeError("boom")

    mutations.subscribe(broken)
    mutations.log_node_created("n1", "section")

    assert len(mutations.get_recent_events()) == 1
    assert "Mutation subscriber" in caplog.text


def test_configure_logging_sets_level():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    try:
        configure_logging(LoggingSettings(level="debug"))
        assert root.level == logging.DEBUG

        configure_logging(LoggingSettings())
        assert root.level == logging.INFO
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)

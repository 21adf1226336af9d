"""
BOOKGRAPH MUTATION LOGGER - The Audit Trail

Records every structural change a ContentGraph makes, alongside the
diagnostics the graph emits instead of raising (dropped duplicates,
skipped remaps).

Architecture:
- MutationLogger: Core logging interface
- FileLogger: Newline-delimited JSON log (optional)
- EventBuffer: In-memory ring buffer for recent events
- configure_logging: Applies LoggingSettings to the stdlib logging tree

Usage:
    mutations = MutationLogger()
    graph = ContentGraph(mutation_logger=mutations)
    graph.add_nodes([...])

    for event in mutations.get_events_by_type(MutationType.EDGE_CREATED):
        print(f"{event.sequence}: {event.source_id} -> {event.target_id}")
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Callable, Dict, List, Optional

import msgspec

if TYPE_CHECKING:
    from infrastructure.config import LoggingSettings

logger = logging.getLogger(__name__)


# =============================================================================
# EVENT SCHEMA
# =============================================================================

class MutationType(str, Enum):
    """Types of graph mutations for event tracking."""
    NODE_CREATED = "NODE_CREATED"
    NODE_UPDATED = "NODE_UPDATED"
    NODE_DELETED = "NODE_DELETED"
    EDGE_CREATED = "EDGE_CREATED"
    EDGE_UPDATED = "EDGE_UPDATED"
    EDGE_DELETED = "EDGE_DELETED"
    DUPLICATE_DROPPED = "DUPLICATE_DROPPED"
    REMAP_SKIPPED = "REMAP_SKIPPED"


class MutationEvent(msgspec.Struct, kw_only=True):
    """A single recorded graph mutation or diagnostic."""
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    node_id: Optional[str] = None
    node_type: Optional[str] = None

    # Edges
    edge_id: Optional[str] = None
    source_id: Optional[str] = None
    target_id: Optional[str] = None
    edge_type: Optional[str] = None

    # Diagnostics
    detail: Optional[str] = None


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enable_file_log: bool = False       # Enable file-based logging
    log_path: Optional[Path] = None     # Directory for log files
    buffer_size: int = 10000            # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")
        self.log_path = Path(self.log_path)

    @classmethod
    def from_settings(cls, settings: "LoggingSettings") -> "LoggerConfig":
        return cls(
            enable_file_log=settings.enable_file_log,
            log_path=Path(settings.log_path),
            buffer_size=settings.buffer_size,
        )


def configure_logging(settings: "LoggingSettings") -> None:
    """Apply the configured level and format to the root logger."""
    logging.basicConfig(level=settings.level.upper(), format=settings.format, force=True)


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Thread-safe ring buffer for recent mutation events.

    Oldest events fall off once max_size is reached.
    """

    def __init__(self, max_size: int = 10000):
        self._buffer: deque[MutationEvent] = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._sequence = 0

    def append(self, event: MutationEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def get_last(self, n: int) -> List[MutationEvent]:
        """Get the last n events."""
        with self._lock:
            items = list(self._buffer)
            return items[-n:] if n > 0 else []

    def get_by_node(self, node_id: str) -> List[MutationEvent]:
        """Events about a node, including edges that touch it."""
        with self._lock:
            return [
                e for e in self._buffer
                if node_id in (e.node_id, e.source_id, e.target_id)
            ]

    def get_by_type(self, mutation_type: str) -> List[MutationEvent]:
        mutation_type = getattr(mutation_type, "value", mutation_type)
        with self._lock:
            return [e for e in self._buffer if e.mutation_type == mutation_type]

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    File-based event logger.

    Writes events as newline-delimited JSON, one file per UTC day.
    """

    def __init__(self, log_path: Path):
        self._log_path = Path(log_path)
        self._current_file: Optional[IO[bytes]] = None
        self._current_date: Optional[str] = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

        self._log_path.mkdir(parents=True, exist_ok=True)

    def write(self, event: MutationEvent) -> None:
        with self._lock:
            self._ensure_file()
            self._current_file.write(self._encoder.encode(event) + b"\n")
            self._current_file.flush()

    def _ensure_file(self) -> None:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if self._current_date != today:
            if self._current_file:
                self._current_file.close()
            self._current_file = open(self._file_for(today), "ab")
            self._current_date = today

    def _file_for(self, date: str) -> Path:
        return self._log_path / f"mutations_{date}.jsonl"

    def close(self) -> None:
        with self._lock:
            if self._current_file:
                self._current_file.close()
                self._current_file = None
                self._current_date = None

    def read_log(self, date: str) -> List[MutationEvent]:
        """Read events from a specific date's log. Corrupt lines are skipped."""
        filepath = self._file_for(date)
        if not filepath.exists():
            return []

        events = []
        decoder = msgspec.json.Decoder(type=MutationEvent)

        with open(filepath, "rb") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(decoder.decode(line))
                except msgspec.DecodeError:
                    logger.warning("Skipping corrupt log line %s:%d", filepath, lineno)

        return events


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for graph mutations.

    Events always go to the in-memory buffer, to the file log when enabled,
    and to every subscriber.

    Usage:
        mutations = MutationLogger()
        mutations.log_node_created("node_123", "section")

        events = mutations.get_events_for_node("node_123")
        recent = mutations.get_recent_events(100)
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()

        self._buffer = EventBuffer(self.config.buffer_size)
        self._file_logger: Optional[FileLogger] = None

        if self.config.enable_file_log and self.config.log_path:
            self._file_logger = FileLogger(self.config.log_path)

        self._subscribers: List[Callable[[MutationEvent], None]] = []

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _record(self, mutation_type: MutationType, **fields) -> MutationEvent:
        event = MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=mutation_type.value,
            **fields
        )
        self._emit(event)
        return event

    def _emit(self, event: MutationEvent) -> None:
        self._buffer.append(event)

        if self._file_logger:
            self._file_logger.write(event)

        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Mutation subscriber %r failed", subscriber)

    # =========================================================================
    # LOGGING METHODS
    # =========================================================================

    def log_node_created(self, node_id: str, node_type: str) -> MutationEvent:
        return self._record(MutationType.NODE_CREATED, node_id=node_id, node_type=node_type)

    def log_node_updated(self, node_id: str, node_type: str) -> MutationEvent:
        return self._record(MutationType.NODE_UPDATED, node_id=node_id, node_type=node_type)

    def log_node_deleted(self, node_id: str, node_type: str) -> MutationEvent:
        return self._record(MutationType.NODE_DELETED, node_id=node_id, node_type=node_type)

    def log_edge_created(
        self,
        edge_id: str,
        source_id: str,
        target_id: str,
        edge_type: str,
    ) -> MutationEvent:
        return self._record(
            MutationType.EDGE_CREATED,
            edge_id=edge_id, source_id=source_id, target_id=target_id, edge_type=edge_type,
        )

    def log_edge_updated(
        self,
        edge_id: str,
        source_id: str,
        target_id: str,
        edge_type: str,
    ) -> MutationEvent:
        return self._record(
            MutationType.EDGE_UPDATED,
            edge_id=edge_id, source_id=source_id, target_id=target_id, edge_type=edge_type,
        )

    def log_edge_deleted(
        self,
        edge_id: str,
        source_id: str,
        target_id: str,
        edge_type: str,
    ) -> MutationEvent:
        return self._record(
            MutationType.EDGE_DELETED,
            edge_id=edge_id, source_id=source_id, target_id=target_id, edge_type=edge_type,
        )

    def log_duplicate_dropped(
        self,
        edge_id: str,
        source_id: str,
        target_id: str,
        edge_type: str,
        detail: str,
    ) -> MutationEvent:
        """An edge was rejected because its id or triple already exists."""
        return self._record(
            MutationType.DUPLICATE_DROPPED,
            edge_id=edge_id, source_id=source_id, target_id=target_id, edge_type=edge_type,
            detail=detail,
        )

    def log_remap_skipped(
        self,
        node_id: str,
        old_parent_id: str,
        new_parent_id: str,
    ) -> MutationEvent:
        """A remap found no edge from old_parent_id in node_id's ancestry."""
        return self._record(
            MutationType.REMAP_SKIPPED,
            node_id=node_id, source_id=old_parent_id, target_id=new_parent_id,
            detail="old parent not found in ancestry",
        )

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        return self._buffer.get_last(n)

    def get_events_for_node(self, node_id: str) -> List[MutationEvent]:
        return self._buffer.get_by_node(node_id)

    def get_events_by_type(self, mutation_type: str) -> List[MutationEvent]:
        return self._buffer.get_by_type(mutation_type)

    def get_node_timeline(self, node_id: str) -> List[Dict[str, Any]]:
        """Simplified list of the mutations touching a node."""
        return [
            {
                "sequence": e.sequence,
                "type": e.mutation_type,
                "edge": e.edge_id,
                "detail": e.detail,
            }
            for e in self.get_events_for_node(node_id)
        ]

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        if self._file_logger:
            self._file_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

"""
BOOKGRAPH DATA LOADER - The Digestion System

Turns flat node/edge data into ContentGraphs:
- JSON records (msgspec) as written by ContentGraph.to_record()
- Polars DataFrames and parquet files as written by ContentGraph.save_parquet()

Architecture:
- PolarsLoader: Lazy parquet loading with schema validation
- BulkIngestor: Graph population from DataFrames
- load_graph_json / load_parquet: one-call convenience loaders

Null handling is pushed into Polars before rows are turned into
descriptors: a missing properties/format column becomes "{}", a missing
directional flag becomes True.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import msgspec
import polars as pl

from core.blocks import build_node
from core.graph_db import EDGE_FRAME_SCHEMA, NODE_FRAME_SCHEMA, ContentGraph
from core.schemas import ContentNode, deserialize_record


# =============================================================================
# SCHEMA DEFINITIONS (For Import Validation)
# =============================================================================

# Required node columns; the rest of NODE_FRAME_SCHEMA is optional
NODE_REQUIRED = {
    "id": pl.Utf8,
    "type": pl.Utf8,
}

EDGE_REQUIRED = {
    "source_id": pl.Utf8,
    "target_id": pl.Utf8,
    "type": pl.Utf8,
}


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class DataLoadError(Exception):
    """Base exception for data loading errors."""
    pass


class SchemaValidationError(DataLoadError):
    """Raised when data doesn't match expected schema."""
    def __init__(self, missing_columns: List[str], invalid_types: Dict[str, str] = None):
        self.missing_columns = missing_columns
        self.invalid_types = invalid_types or {}
        msg = f"Schema validation failed. Missing columns: {missing_columns}"
        if invalid_types:
            msg += f", Invalid types: {invalid_types}"
        super().__init__(msg)


def validate_schema(schema: Dict[str, Any], required: Dict[str, Any]) -> None:
    """
    Check a frame schema for required columns and their types.

    Raises:
        SchemaValidationError: If columns are missing or mistyped
    """
    missing = []
    invalid_types = {}

    for col_name, expected_type in required.items():
        if col_name not in schema:
            missing.append(col_name)
        elif schema[col_name] != expected_type:
            invalid_types[col_name] = f"Expected {expected_type}, got {schema[col_name]}"

    if missing or invalid_types:
        raise SchemaValidationError(missing_columns=missing, invalid_types=invalid_types)


# =============================================================================
# POLARS LOADER (Lazy File Loading)
# =============================================================================

class PolarsLoader:
    """
    Lazy data loader using Polars scan operations.

    Usage:
        loader = PolarsLoader()
        lf = loader.load_parquet_nodes("book.nodes.parquet")
        lf = lf.filter(pl.col("type") == "text")
        df = lf.collect()
    """

    def __init__(self, validate: bool = True):
        self.validate = validate

    def load_parquet_nodes(self, path: str | Path) -> pl.LazyFrame:
        """
        Lazy load nodes from a parquet file.

        Raises:
            SchemaValidationError: If validation enabled and schema invalid
        """
        lf = pl.scan_parquet(Path(path))
        if self.validate:
            validate_schema(lf.collect_schema(), NODE_REQUIRED)
        return lf

    def load_parquet_edges(self, path: str | Path) -> pl.LazyFrame:
        lf = pl.scan_parquet(Path(path))
        if self.validate:
            validate_schema(lf.collect_schema(), EDGE_REQUIRED)
        return lf

    def load_graph_state(self, base_path: str | Path) -> Tuple[pl.LazyFrame, pl.LazyFrame]:
        """
        Load both frames written by ContentGraph.save_parquet(base_path).

        Returns:
            Tuple of (nodes_lf, edges_lf)
        """
        base_path = Path(base_path)
        return (
            self.load_parquet_nodes(base_path.with_suffix(".nodes.parquet")),
            self.load_parquet_edges(base_path.with_suffix(".edges.parquet")),
        )


# =============================================================================
# BULK INGESTOR (DataFrame -> Graph)
# =============================================================================

class BulkIngestor:
    """
    Populate a ContentGraph from Polars DataFrames.

    Rows are converted to descriptors in one pass (to_dicts) and handed to
    the graph as one batch.

    Usage:
        ingestor = BulkIngestor(graph)
        ingestor.ingest_nodes(nodes_df)
        ingestor.ingest_edges(edges_df)
    """

    def __init__(self, graph: ContentGraph, validate_blocks: bool = True):
        """
        Args:
            graph: ContentGraph to populate
            validate_blocks: If True, rows go through build_node() and must
                satisfy their block type's required fields
        """
        self.graph = graph
        self.validate_blocks = validate_blocks

    @classmethod
    def from_frames(
        cls,
        nodes_df: pl.DataFrame,
        edges_df: Optional[pl.DataFrame] = None,
        require_endpoints: bool = True,
        validate_blocks: bool = True,
        **graph_kwargs
    ) -> ContentGraph:
        """Build a new ContentGraph from node and edge frames."""
        ingestor = cls(ContentGraph(**graph_kwargs), validate_blocks=validate_blocks)
        ingestor.ingest_nodes(nodes_df)
        if edges_df is not None:
            ingestor.ingest_edges(edges_df, require_endpoints=require_endpoints)
        return ingestor.graph

    def ingest_nodes(self, df: pl.DataFrame) -> int:
        """
        Bulk ingest nodes from a DataFrame.

        Args:
            df: Frame with at least 'id' and 'type' columns; properties and
                format are JSON-encoded strings

        Returns:
            Number of rows ingested (duplicates of stored ids included)

        Raises:
            SchemaValidationError: If required columns are missing/mistyped
            DataLoadError: If ids are null or a bag isn't valid JSON
        """
        validate_schema(df.schema, NODE_REQUIRED)
        if df.is_empty():
            return 0
        if df["id"].null_count() > 0:
            raise DataLoadError("Found rows with null IDs")

        df_clean = self._with_defaults(df, {
            "book_context": "",
            "schema_version": None,
            "properties": "{}",
            "format": "{}",
        })

        nodes = []
        for row in df_clean.select(list(NODE_FRAME_SCHEMA)).to_dicts():
            row["properties"] = self._decode_bag(row, "properties")
            row["format"] = self._decode_bag(row, "format")
            nodes.append(
                build_node(row, self.graph.id_factory) if self.validate_blocks
                else ContentNode.create(**row)
            )

        self.graph.add_nodes(nodes)
        return len(nodes)

    def ingest_edges(self, df: pl.DataFrame, require_endpoints: bool = True) -> int:
        """
        Bulk ingest edges from a DataFrame.

        Returns:
            Number of edges stored (dropped duplicates excluded)

        Raises:
            SchemaValidationError: If required columns are missing/mistyped
            MissingEndpointError: If require_endpoints and an edge dangles
        """
        validate_schema(df.schema, EDGE_REQUIRED)
        if df.is_empty():
            return 0

        df_clean = self._with_defaults(df, {
            "id": None,
            "ordering_key": None,
            "directional": True,
        })
        df_clean = df_clean.with_columns(
            pl.col("ordering_key").cast(pl.Float64),
            pl.col("directional").cast(pl.Boolean),
        )

        rows = df_clean.select(list(EDGE_FRAME_SCHEMA)).to_dicts()
        return self.graph.add_edges(rows, require_endpoints=require_endpoints)

    @staticmethod
    def _with_defaults(df: pl.DataFrame, defaults: Dict[str, Any]) -> pl.DataFrame:
        """Add missing columns and fill nulls in Polars."""
        missing = [pl.lit(value).alias(name) for name, value in defaults.items() if name not in df.columns]
        if missing:
            df = df.with_columns(missing)
        fills = [pl.col(name).fill_null(value) for name, value in defaults.items() if value is not None]
        return df.with_columns(fills) if fills else df

    @staticmethod
    def _decode_bag(row: Dict[str, Any], key: str) -> Dict[str, Any]:
        try:
            return msgspec.json.decode(row[key])
        except msgspec.DecodeError as e:
            raise DataLoadError(f"Invalid {key} JSON on node {row['id']}: {e}") from e


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def load_graph_json(source: str | Path | bytes, **graph_kwargs) -> ContentGraph:
    """
    Rebuild a ContentGraph from a JSON record.

    Args:
        source: Path to a JSON file, or the JSON bytes themselves

    Raises:
        DataLoadError: If the data is not a valid graph record
    """
    data = source if isinstance(source, bytes) else Path(source).read_bytes()
    try:
        record = deserialize_record(data)
    except msgspec.DecodeError as e:
        raise DataLoadError(f"Invalid graph record: {e}") from e
    return ContentGraph.from_record(record, **graph_kwargs)


def load_parquet(base_path: str | Path, **graph_kwargs) -> ContentGraph:
    """
    Rebuild a ContentGraph saved with ContentGraph.save_parquet(base_path).

    Stored nodes are restored as they were, without block validation, and
    dangling edges are kept.
    """
    nodes_lf, edges_lf = PolarsLoader(validate=True).load_graph_state(base_path)
    return BulkIngestor.from_frames(
        nodes_lf.collect(),
        edges_lf.collect(),
        require_endpoints=False,
        validate_blocks=False,
        **graph_kwargs
    )

"""
BOOKGRAPH INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML configuration loading
- data_loader: JSON and Polars-based graph loading with schema validation
- logger: Mutation event logging
"""

from infrastructure.config import BookgraphConfig, load_config
from infrastructure.logger import MutationLogger, MutationType, configure_logging
from infrastructure.data_loader import (
    BulkIngestor,
    DataLoadError,
    SchemaValidationError,
    load_graph_json,
    load_parquet,
)

__all__ = [
    "BookgraphConfig",
    "load_config",
    "MutationLogger",
    "MutationType",
    "configure_logging",
    "BulkIngestor",
    "DataLoadError",
    "SchemaValidationError",
    "load_graph_json",
    "load_parquet",
]

"""
BOOKGRAPH CONFIG - TOML-backed settings

Configuration is read once from config/bookgraph.toml and converted into
typed msgspec Structs. A missing or unreadable file is not fatal: a warning
is issued and defaults are used.

Usage:
    from infrastructure.config import load_config

    config = load_config()
    graph = ContentGraph.build(nodes, edges,
                               require_endpoints=config.graph.require_endpoints)
"""
import tomllib
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import msgspec

from core.ontology import DEFAULT_TEXT_JOIN


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "bookgraph.toml"


# =============================================================================
# SETTINGS
# =============================================================================

class GraphSettings(msgspec.Struct, kw_only=True):
    """Graph engine defaults."""
    require_endpoints: bool = True      # Reject edges whose endpoints are absent
    text_join: str = DEFAULT_TEXT_JOIN  # Separator for plain-text extraction


class LoggingSettings(msgspec.Struct, kw_only=True):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    buffer_size: int = 10000
    enable_file_log: bool = False
    log_path: str = "./workspace/logs"


class BookgraphConfig(msgspec.Struct, kw_only=True):
    graph: GraphSettings = msgspec.field(default_factory=GraphSettings)
    logging: LoggingSettings = msgspec.field(default_factory=LoggingSettings)


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the raw TOML sections.

    Returns:
        Dict with all configuration sections ({} if the file can't be read)
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def load_config(path: Optional[Path] = None) -> BookgraphConfig:
    """
    Load typed configuration.

    Unknown sections and keys are ignored. Values of the wrong type
    fall back to the defaults with a warning.
    """
    raw = load_toml_config(path)
    try:
        return msgspec.convert(raw, type=BookgraphConfig)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid configuration, using defaults: {e}")
        return BookgraphConfig()

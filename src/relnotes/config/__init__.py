"""Configuration: pydantic models and the layered loader."""

from relnotes.config.loader import get_index_path, load_config
from relnotes.config.models import (
    EmbeddingConfig,
    IndexConfig,
    IndexerConfig,
    LoggingConfig,
    LogOutputConfig,
    QueryConfig,
    RelNotesConfig,
    VaultConfig,
)

__all__ = [
    "EmbeddingConfig",
    "IndexConfig",
    "IndexerConfig",
    "LogOutputConfig",
    "LoggingConfig",
    "QueryConfig",
    "RelNotesConfig",
    "VaultConfig",
    "get_index_path",
    "load_config",
]

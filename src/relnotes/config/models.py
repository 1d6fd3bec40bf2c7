"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (RELNOTES__SECTION__KEY)
3. Vault YAML (<vault>/.relnotes/config.yaml)
4. Global YAML (~/.config/relnotes/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    RELNOTES__<SECTION>__<KEY>=<VALUE>

Examples:
    RELNOTES__LOGGING__LEVEL=DEBUG
    RELNOTES__INDEXER__CONCURRENCY=2
    RELNOTES__EMBEDDING__PROVIDER=hash
    RELNOTES__QUERY__MIN_SCORE=0.3
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        RELNOTES__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every document the pipeline touches.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """Index storage configuration.

    Env vars:
        RELNOTES__INDEX__INDEX_PATH: Override index file location
        RELNOTES__INDEX__VERSION: Version stamped on newly created indexes
    """

    index_path: str | None = Field(
        default=None,
        description="Override index file location. Default: <vault>/.relnotes/index.json.",
    )
    version: int = Field(
        default=1,
        description="Version stamped on newly created indexes.",
    )
    indexed_metadata: list[str] = Field(
        default_factory=list,
        description="Metadata fields recorded in metadata_config.indexed.",
    )


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration.

    Env vars:
        RELNOTES__EMBEDDING__PROVIDER: fastembed or hash
        RELNOTES__EMBEDDING__MODEL_NAME: fastembed model name
        RELNOTES__EMBEDDING__TIMEOUT_SEC: Per-call provider timeout
    """

    provider: Literal["fastembed", "hash"] = Field(
        default="fastembed",
        description="Embedding backend. 'hash' is deterministic and model-free (tests, offline).",
    )
    model_name: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="fastembed model used by the 'fastembed' provider.",
    )
    dimension: int = Field(
        default=384,
        description="Vector length produced by the 'hash' provider.",
    )
    timeout_sec: float = Field(
        default=30.0,
        description="Per-call timeout. A timed-out call fails that document only.",
    )
    max_chars: int = Field(
        default=1500,
        description="Text is truncated to this many characters (512-token context).",
    )

    @field_validator("timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_sec must be positive, got {v}")
        return v


class IndexerConfig(BaseModel):
    """Background indexer configuration.

    Env vars:
        RELNOTES__INDEXER__CONCURRENCY: Max documents in flight during a sweep
        RELNOTES__INDEXER__BATCH_SIZE: Documents between yield points
        RELNOTES__INDEXER__DEBOUNCE_SEC: Debounce window for edits
    """

    concurrency: int = Field(
        default=5,
        description="Max documents embedded concurrently during a sweep. "
        "RISK: Higher values may overwhelm the embedding provider.",
    )
    batch_size: int = Field(
        default=25,
        description="Documents processed between yields to the event loop.",
    )
    debounce_sec: float = Field(
        default=5.0,
        description="Re-index debounce window. Rapid edits to one note collapse into one re-index.",
    )
    delete_missing: bool = Field(
        default=True,
        description="Remove index entries for notes that no longer exist during a sync.",
    )
    sync_on_start: bool = Field(
        default=True,
        description="Run a full sync on start when the index is empty.",
    )

    @field_validator("concurrency", "batch_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class QueryConfig(BaseModel):
    """Related-notes query defaults.

    Env vars:
        RELNOTES__QUERY__LIMIT: Default number of related notes
        RELNOTES__QUERY__MIN_SCORE: Minimum cosine similarity
    """

    limit: int = Field(
        default=10,
        description="Default number of related notes returned.",
    )
    min_score: float = Field(
        default=0.25,
        description="Results scoring below this cosine similarity are dropped.",
    )

    @field_validator("min_score")
    @classmethod
    def validate_min_score(cls, v: float) -> float:
        if not (-1.0 <= v <= 1.0):
            raise ValueError(f"min_score must be within [-1, 1], got {v}")
        return v


class VaultConfig(BaseModel):
    """Vault scanning configuration."""

    extensions: list[str] = Field(
        default_factory=lambda: [".md"],
        description="File extensions treated as notes.",
    )
    ignored_dirs: list[str] = Field(
        default_factory=lambda: [".obsidian", ".git", ".trash", ".relnotes", "node_modules"],
        description="Directory names never scanned or watched.",
    )


class RelNotesConfig(BaseModel):
    """Root configuration for relnotes."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)

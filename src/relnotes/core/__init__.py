"""Core module exports."""

from relnotes.core.errors import (
    ConfigError,
    DocumentError,
    EmbeddingError,
    ErrorCode,
    InternalError,
    RelNotesError,
    StoreError,
)
from relnotes.core.logging import (
    configure_logging,
    get_logger,
    get_request_id,
    request_scope,
    set_request_id,
)
from relnotes.core.progress import spinner, status, sync_progress

__all__ = [
    # Errors
    "ConfigError",
    "DocumentError",
    "EmbeddingError",
    "ErrorCode",
    "InternalError",
    "RelNotesError",
    "StoreError",
    # Logging
    "configure_logging",
    "get_logger",
    "get_request_id",
    "request_scope",
    "set_request_id",
    # Progress
    "spinner",
    "status",
    "sync_progress",
]

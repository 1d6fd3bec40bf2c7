"""relnotes error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index store
- 4xxx: Documents
- 5xxx: Embedding
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Index store (3xxx)
    INDEX_NOT_FOUND = 3001
    INDEX_ALREADY_EXISTS = 3002
    DUPLICATE_ID = 3003
    UPDATE_IN_PROGRESS = 3004
    NO_UPDATE_IN_PROGRESS = 3005
    DIMENSION_MISMATCH = 3006
    INDEX_CORRUPT = 3007
    PERSIST_FAILED = 3008

    # Documents (4xxx)
    NO_SUCH_DOCUMENT = 4001

    # Embedding (5xxx)
    EMBEDDING_UNAVAILABLE = 5001
    PROVIDER_FAILURE = 5002
    PROVIDER_TIMEOUT = 5003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class RelNotesError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'DUPLICATE_ID')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(RelNotesError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class StoreError(RelNotesError):
    """Index store errors: lifecycle, uniqueness, update protocol, persistence."""

    @classmethod
    def not_found(cls) -> "StoreError":
        return cls(
            code=ErrorCode.INDEX_NOT_FOUND,
            message="Index does not exist",
        )

    @classmethod
    def already_exists(cls) -> "StoreError":
        return cls(
            code=ErrorCode.INDEX_ALREADY_EXISTS,
            message="Index already exists",
        )

    @classmethod
    def duplicate_id(cls, item_id: str) -> "StoreError":
        return cls(
            code=ErrorCode.DUPLICATE_ID,
            message=f"Item with id {item_id} already exists",
            details={"id": item_id},
        )

    @classmethod
    def update_in_progress(cls) -> "StoreError":
        return cls(
            code=ErrorCode.UPDATE_IN_PROGRESS,
            message="Update already in progress",
        )

    @classmethod
    def no_update_in_progress(cls) -> "StoreError":
        return cls(
            code=ErrorCode.NO_UPDATE_IN_PROGRESS,
            message="No update in progress",
        )

    @classmethod
    def dimension_mismatch(cls, expected: int, got: int) -> "StoreError":
        return cls(
            code=ErrorCode.DIMENSION_MISMATCH,
            message=f"Vector dimension mismatch ({expected} vs {got})",
            details={"expected": expected, "got": got},
        )

    @classmethod
    def corrupt(cls, location: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.INDEX_CORRUPT,
            message=f"Index data at {location} is unreadable: {reason}",
            details={"location": location, "reason": reason},
        )

    @classmethod
    def persist_failed(cls, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.PERSIST_FAILED,
            message=f"Error saving index: {reason}",
            details={"reason": reason},
        )


class DocumentError(RelNotesError):
    """Document lookup errors."""

    @classmethod
    def not_found(cls, note_id: str) -> "DocumentError":
        return cls(
            code=ErrorCode.NO_SUCH_DOCUMENT,
            message=f"Could not find note with id {note_id}",
            details={"id": note_id},
        )


class EmbeddingError(RelNotesError):
    """Embedding provider errors."""

    @classmethod
    def unavailable(cls, note_id: str) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_UNAVAILABLE,
            message=f"No embedding available for {note_id}",
            details={"id": note_id},
        )

    @classmethod
    def provider_failure(cls, reason: str, **details: Any) -> "EmbeddingError":
        return cls(
            code=ErrorCode.PROVIDER_FAILURE,
            message=f"Embedding provider failed: {reason}",
            retryable=True,
            details={"reason": reason, **details},
        )

    @classmethod
    def timeout(cls, seconds: float) -> "EmbeddingError":
        return cls(
            code=ErrorCode.PROVIDER_TIMEOUT,
            message=f"Embedding provider timed out after {seconds:g}s",
            retryable=True,
            details={"timeout_sec": seconds},
        )


class InternalError(RelNotesError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

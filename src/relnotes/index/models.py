"""Index data model: entries, the persisted container, query and sync results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Literal

import numpy as np

from relnotes.index.filters import MetadataValue
from relnotes.index.vector import Vector, as_vector

SyncPhase = Literal["scan", "index", "cleanup"]


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True, slots=True, eq=False)
class IndexedEntry:
    """One note's embedding plus bookkeeping.

    Entries are immutable. ``norm`` is derived from ``vector`` on
    construction, so every copy made with ``dataclasses.replace`` carries a
    norm consistent with its vector.
    """

    id: str
    vector: Vector
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    content_hash: str | None = None
    updated_at: str = field(default_factory=utc_now)
    norm: float = field(init=False)

    def __post_init__(self) -> None:
        vec = as_vector(self.vector)
        object.__setattr__(self, "vector", vec)
        object.__setattr__(self, "norm", float(np.linalg.norm(vec)))

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])

    def copy(self) -> IndexedEntry:
        """Deep copy, safe to hand out to callers."""
        return replace(self, vector=self.vector.copy(), metadata=dict(self.metadata))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "metadata": dict(self.metadata),
            "vector": self.vector.tolist(),
            "norm": self.norm,
        }
        if self.content_hash is not None:
            data["content_hash"] = self.content_hash
        data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexedEntry:
        kwargs: dict[str, Any] = {
            "id": data["id"],
            "vector": data["vector"],
            "metadata": dict(data.get("metadata") or {}),
            "content_hash": data.get("content_hash"),
        }
        if data.get("updated_at"):
            kwargs["updated_at"] = data["updated_at"]
        return cls(**kwargs)


@dataclass(slots=True)
class IndexData:
    """The whole index as persisted: version, metadata config, items by id.

    ``items`` keeps insertion order, which is the scan order of queries.
    """

    version: int = 1
    metadata_config: dict[str, Any] = field(default_factory=dict)
    items: dict[str, IndexedEntry] = field(default_factory=dict)

    def clone(self) -> IndexData:
        """Shallow clone: a new items dict sharing the immutable entries."""
        return IndexData(
            version=self.version,
            metadata_config=dict(self.metadata_config),
            items=dict(self.items),
        )

    @property
    def dimension(self) -> int | None:
        for entry in self.items.values():
            return entry.dimension
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "metadata_config": dict(self.metadata_config),
            "items": [entry.to_dict() for entry in self.items.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexData:
        items: dict[str, IndexedEntry] = {}
        for raw in data.get("items", []):
            entry = IndexedEntry.from_dict(raw)
            items[entry.id] = entry
        return cls(
            version=int(data.get("version", 1)),
            metadata_config=dict(data.get("metadata_config") or {}),
            items=items,
        )


@dataclass(frozen=True, slots=True)
class SimilarityResult:
    """A query hit: note id and cosine score in [-1, 1]."""

    id: str
    score: float


@dataclass(frozen=True, slots=True)
class IndexStats:
    version: int
    metadata_config: dict[str, Any]
    items: int


@dataclass(frozen=True, slots=True)
class SyncProgress:
    """Progress event emitted during a vault sweep."""

    phase: SyncPhase
    processed: int
    total: int


@dataclass(slots=True)
class SyncResult:
    """Summary of a vault sweep.

    ``unchanged`` counts notes whose fingerprint matched and ``unembeddable``
    notes the provider returned no vector for. Notes that failed are counted
    in ``failed`` with a message per failure in ``errors``.
    """

    scanned: int = 0
    unchanged: int = 0
    removed: int = 0
    indexed: int = 0
    unembeddable: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

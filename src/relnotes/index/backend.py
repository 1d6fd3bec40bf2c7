"""Persistence backends for the index store.

A backend stores the whole index as one document. Every commit overwrites
it in full; there is no delta persistence and the last full write wins.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from relnotes.core.errors import StoreError
from relnotes.index.models import IndexData

log = structlog.get_logger()


@runtime_checkable
class IndexBackend(Protocol):
    """Whole-document read/write storage for an index."""

    async def initialize_index(self, data: IndexData) -> None: ...

    async def drop_index(self) -> None: ...

    async def update_index(self, data: IndexData) -> None: ...

    async def index_initialized(self) -> bool: ...

    async def retrieve_index(self) -> IndexData: ...


class MemoryBackend:
    """Keeps the serialized index in memory. Used for tests and ephemeral stores."""

    def __init__(self) -> None:
        self._document: dict[str, Any] | None = None
        self.writes = 0

    async def initialize_index(self, data: IndexData) -> None:
        if self._document is None:
            self._document = data.to_dict()
            self.writes += 1

    async def drop_index(self) -> None:
        self._document = None

    async def update_index(self, data: IndexData) -> None:
        self._document = data.to_dict()
        self.writes += 1

    async def index_initialized(self) -> bool:
        return self._document is not None

    async def retrieve_index(self) -> IndexData:
        if self._document is None:
            raise StoreError.not_found()
        return IndexData.from_dict(self._document)


class JsonFileBackend:
    """Stores the index as a single JSON file.

    File I/O runs in the default executor so the event loop is not blocked
    while large indexes are written.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def _run(self, fn: Any, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def _write(self, data: IndexData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data.to_dict())
        self.path.write_text(payload, encoding="utf-8")
        log.debug("index.file_written", path=str(self.path), items=len(data.items))

    def _read(self) -> IndexData:
        if not self.path.exists():
            raise StoreError.not_found()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return IndexData.from_dict(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StoreError.corrupt(str(self.path), str(e)) from e

    def _unlink(self) -> None:
        self.path.unlink(missing_ok=True)

    async def initialize_index(self, data: IndexData) -> None:
        if not await self._run(self.path.exists):
            await self._run(self._write, data)

    async def drop_index(self) -> None:
        await self._run(self._unlink)

    async def update_index(self, data: IndexData) -> None:
        await self._run(self._write, data)

    async def index_initialized(self) -> bool:
        # Existence only: an unreadable file still counts, so loading it
        # reports INDEX_CORRUPT and create_index refuses to overwrite it.
        return bool(await self._run(self.path.is_file))

    async def retrieve_index(self) -> IndexData:
        result: IndexData = await self._run(self._read)
        return result

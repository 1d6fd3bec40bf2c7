"""Filesystem vault: the authoritative list of notes and their text.

Note ids are POSIX paths relative to the vault root (``"projects/plan.md"``).
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable
from pathlib import Path

import structlog

from relnotes.vault.text import clean_markdown_to_plain_text

log = structlog.get_logger()

DEFAULT_EXTENSIONS: tuple[str, ...] = (".md",)
DEFAULT_IGNORED_DIRS: frozenset[str] = frozenset(
    {".obsidian", ".git", ".trash", ".relnotes", "node_modules"}
)


class FileSystemVault:
    """Reads notes from a directory tree."""

    def __init__(
        self,
        root: Path,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
    ) -> None:
        self.root = root.resolve()
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.ignored_dirs = frozenset(ignored_dirs)

    def is_note_path(self, path: Path) -> bool:
        """True if ``path`` is a note file inside the vault and outside ignored dirs."""
        try:
            rel = path.resolve().relative_to(self.root)
        except ValueError:
            return False
        if any(part in self.ignored_dirs for part in rel.parts[:-1]):
            return False
        return path.suffix.lower() in self.extensions

    def note_id(self, path: Path) -> str:
        return path.resolve().relative_to(self.root).as_posix()

    def note_path(self, note_id: str) -> Path:
        return self.root / Path(note_id)

    def _scan(self) -> list[str]:
        ids: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.ignored_dirs)
            base = Path(dirpath)
            for name in sorted(filenames):
                if Path(name).suffix.lower() in self.extensions:
                    ids.append((base / name).relative_to(self.root).as_posix())
        return ids

    async def list_document_ids(self) -> list[str]:
        """All note ids currently in the vault, in a stable walk order."""
        loop = asyncio.get_running_loop()
        ids: list[str] = await loop.run_in_executor(None, self._scan)
        log.debug("vault.scanned", root=str(self.root), notes=len(ids))
        return ids

    def _read(self, note_id: str) -> str | None:
        path = self.note_path(note_id)
        try:
            markdown = path.read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError):
            return None
        title = Path(note_id).stem
        return clean_markdown_to_plain_text(f"{title}\n\n{markdown}")

    async def get_document_text(self, note_id: str) -> str | None:
        """Cleaned plain text of a note (title first), or None if it vanished."""
        loop = asyncio.get_running_loop()
        text: str | None = await loop.run_in_executor(None, self._read, note_id)
        return text

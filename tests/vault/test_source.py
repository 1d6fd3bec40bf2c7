"""Tests for the filesystem vault."""

from __future__ import annotations

from pathlib import Path

import pytest

from relnotes.vault.source import FileSystemVault


def _write(root: Path, rel: str, content: str = "body") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    _write(tmp_path, "inbox.md")
    _write(tmp_path, "projects/plan.md")
    _write(tmp_path, "projects/archive/old.MD")
    _write(tmp_path, "projects/diagram.png")
    _write(tmp_path, ".obsidian/workspace.md")
    _write(tmp_path, ".relnotes/index.md")
    _write(tmp_path, "node_modules/pkg/readme.md")
    return tmp_path


class TestListDocumentIds:
    @pytest.mark.asyncio
    async def test_given_vault_when_scanned_then_notes_as_posix_ids(self, vault_root: Path) -> None:
        vault = FileSystemVault(vault_root)

        ids = await vault.list_document_ids()

        assert ids == ["inbox.md", "projects/plan.md", "projects/archive/old.MD"]

    @pytest.mark.asyncio
    async def test_given_custom_extensions_when_scanned_then_respected(
        self, vault_root: Path
    ) -> None:
        _write(vault_root, "notes.txt")
        vault = FileSystemVault(vault_root, extensions=[".txt"])

        assert await vault.list_document_ids() == ["notes.txt"]

    @pytest.mark.asyncio
    async def test_given_empty_vault_when_scanned_then_empty(self, tmp_path: Path) -> None:
        assert await FileSystemVault(tmp_path).list_document_ids() == []


class TestGetDocumentText:
    @pytest.mark.asyncio
    async def test_given_note_when_read_then_title_prepended_and_cleaned(
        self, tmp_path: Path
    ) -> None:
        # Given
        _write(
            tmp_path,
            "projects/plan.md",
            "---\ntags: work\n---\n# Goals\n\nShip the **beta** with [[Alice|her]] help.",
        )
        vault = FileSystemVault(tmp_path)

        # When
        text = await vault.get_document_text("projects/plan.md")

        # Then
        assert text is not None
        assert text.startswith("plan\n")
        assert "tags" not in text
        assert "Goals" in text
        assert text.endswith("Ship the beta with Alice help.")

    @pytest.mark.asyncio
    async def test_given_missing_note_when_read_then_none(self, tmp_path: Path) -> None:
        assert await FileSystemVault(tmp_path).get_document_text("ghost.md") is None

    @pytest.mark.asyncio
    async def test_given_title_only_note_when_read_then_title(self, tmp_path: Path) -> None:
        _write(tmp_path, "empty.md", "")
        assert await FileSystemVault(tmp_path).get_document_text("empty.md") == "empty"


class TestPaths:
    @pytest.mark.parametrize(
        ("rel", "expected"),
        [
            ("inbox.md", True),
            ("projects/plan.md", True),
            ("projects/Upper.MD", True),
            ("projects/diagram.png", False),
            (".obsidian/workspace.md", False),
            ("a/.git/x.md", False),
        ],
    )
    def test_given_path_when_checked_then_note_status(
        self, tmp_path: Path, rel: str, expected: bool
    ) -> None:
        vault = FileSystemVault(tmp_path)
        assert vault.is_note_path(tmp_path / rel) is expected

    def test_given_path_outside_vault_when_checked_then_false(self, tmp_path: Path) -> None:
        vault = FileSystemVault(tmp_path / "vault")
        assert vault.is_note_path(tmp_path / "elsewhere.md") is False

    def test_given_note_path_when_converted_then_round_trips(self, tmp_path: Path) -> None:
        vault = FileSystemVault(tmp_path)
        path = vault.note_path("projects/plan.md")

        assert vault.note_id(path) == "projects/plan.md"

"""Vault adapters: markdown cleaning, filesystem notes, change watching."""

from relnotes.vault.source import FileSystemVault
from relnotes.vault.text import clean_markdown_to_plain_text
from relnotes.vault.watcher import VaultWatcher

__all__ = [
    "FileSystemVault",
    "VaultWatcher",
    "clean_markdown_to_plain_text",
]

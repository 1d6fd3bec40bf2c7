"""relnotes CLI - related-notes index for a markdown vault."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from relnotes import __version__
from relnotes.config.loader import load_config
from relnotes.config.models import RelNotesConfig
from relnotes.core.errors import RelNotesError
from relnotes.core.logging import configure_logging, set_request_id
from relnotes.core.progress import pluralize, spinner, status, sync_progress
from relnotes.index.models import SyncResult
from relnotes.notes.facade import RelatedNotes
from relnotes.notes.pipeline import IndexOutcome
from relnotes.vault.source import FileSystemVault
from relnotes.vault.watcher import VaultWatcher

T = TypeVar("T")


def _run(ctx: click.Context, body: Callable[[RelatedNotes], Awaitable[T]]) -> T:
    """Build the facade for the selected vault, run ``body``, always stop it.

    Store, document and embedding failures become click errors.
    """
    vault_root: Path = ctx.obj["vault"]
    config: RelNotesConfig = ctx.obj["config"]

    async def main() -> T:
        notes = RelatedNotes.for_vault(vault_root, config)
        try:
            return await body(notes)
        finally:
            await notes.stop()

    try:
        return asyncio.run(main())
    except RelNotesError as e:
        raise click.ClickException(str(e)) from e


def _print_sync_summary(result: SyncResult, verb: str) -> None:
    parts = [f"{result.indexed} indexed", f"{result.unchanged} unchanged"]
    if result.removed:
        parts.append(f"{result.removed} removed")
    if result.unembeddable:
        parts.append(f"{result.unembeddable} empty")
    status(f"{verb} {pluralize(result.scanned, 'note')}: {', '.join(parts)}", style="success")
    if result.failed:
        status(f"{pluralize(result.failed, 'note')} failed (run with -v for details)", style="warning")


@click.group()
@click.version_option(version=__version__, prog_name="relnotes")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--vault",
    "vault",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Vault root (default: current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, vault: Path) -> None:
    """relnotes - find related notes in a markdown vault."""
    ctx.ensure_object(dict)
    vault_root = vault.resolve()
    try:
        config = load_config(vault_root)
    except RelNotesError as e:
        raise click.ClickException(str(e)) from e
    if verbose:
        config.logging.level = "DEBUG"
    configure_logging(config=config.logging)
    set_request_id()
    ctx.obj["verbose"] = verbose
    ctx.obj["vault"] = vault_root
    ctx.obj["config"] = config


@cli.command("sync")
@click.option("--keep-missing", is_flag=True, help="Keep entries for notes that no longer exist")
@click.pass_context
def sync_command(ctx: click.Context, keep_missing: bool) -> None:
    """Index new and changed notes, drop deleted ones."""

    async def body(notes: RelatedNotes) -> SyncResult:
        await notes.ensure_index()
        with sync_progress() as bar:
            return await notes.sync_vault_to_index(
                delete_missing=not keep_missing, on_progress=bar.update
            )

    _print_sync_summary(_run(ctx, body), "Synced")


@cli.command("rebuild")
@click.pass_context
def rebuild_command(ctx: click.Context) -> None:
    """Drop the index and embed every note again."""

    async def body(notes: RelatedNotes) -> SyncResult:
        with sync_progress() as bar:
            return await notes.rebuild_vault_index(on_progress=bar.update)

    _print_sync_summary(_run(ctx, body), "Rebuilt")


@cli.command("index")
@click.argument("note")
@click.pass_context
def index_command(ctx: click.Context, note: str) -> None:
    """Index a single NOTE (path relative to the vault)."""

    async def body(notes: RelatedNotes) -> IndexOutcome:
        await notes.ensure_index()
        with spinner(f"Indexing {note}"):
            return await notes.upsert_note_to_index(note)

    outcome = _run(ctx, body)
    messages = {
        IndexOutcome.UPSERTED: ("Indexed", "success"),
        IndexOutcome.SKIPPED: ("Unchanged", "info"),
        IndexOutcome.REMOVED: ("Empty note, removed from index", "warning"),
        IndexOutcome.SUPERSEDED: ("Removed while indexing, not stored", "warning"),
    }
    message, style = messages[outcome]
    status(f"{message}: {note}", style=style)


@cli.command("remove")
@click.argument("note")
@click.pass_context
def remove_command(ctx: click.Context, note: str) -> None:
    """Remove NOTE from the index."""

    async def body(notes: RelatedNotes) -> bool:
        await notes.ensure_index()
        return await notes.delete_note(note)

    if _run(ctx, body):
        status(f"Removed: {note}", style="success")
    else:
        status(f"Not indexed: {note}", style="info")


@cli.command("rename")
@click.argument("old")
@click.argument("new")
@click.pass_context
def rename_command(ctx: click.Context, old: str, new: str) -> None:
    """Move the entry for OLD to NEW without re-embedding."""

    async def body(notes: RelatedNotes) -> bool:
        await notes.ensure_index()
        return await notes.indexer.rename_note(old, new)

    if _run(ctx, body):
        status(f"Renamed: {old} -> {new}", style="success")
    else:
        status(f"Not indexed: {old}", style="info")


@cli.command("related")
@click.argument("note")
@click.option("--limit", type=int, default=None, help="Max results (default from config)")
@click.option("--min-score", type=float, default=None, help="Minimum similarity")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def related_command(
    ctx: click.Context,
    note: str,
    limit: int | None,
    min_score: float | None,
    as_json: bool,
) -> None:
    """List notes related to NOTE."""

    async def body(notes: RelatedNotes) -> list[Any]:
        await notes.ensure_index()
        text = None
        if await notes.index.get_item(note) is None:
            text = await notes.get_clean_note_text(note)
        return await notes.get_similar_notes(
            note_id=note, text=text, limit=limit, min_score=min_score
        )

    results = _run(ctx, body)
    if as_json:
        click.echo(json.dumps([{"id": r.id, "score": round(r.score, 4)} for r in results]))
        return
    if not results:
        click.echo("No related notes.")
        return
    for r in results:
        click.echo(f"{r.score:.3f}  {r.id}")


@cli.command("stats")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats_command(ctx: click.Context, as_json: bool) -> None:
    """Show index statistics."""

    async def body(notes: RelatedNotes) -> dict[str, Any] | None:
        if not await notes.index.is_index_created():
            return None
        stats = await notes.get_index_stats()
        return {
            "version": stats.version,
            "metadata_config": stats.metadata_config,
            "items": stats.items,
        }

    data = _run(ctx, body)
    if as_json:
        click.echo(json.dumps(data if data is not None else {"initialized": False}))
        return
    if data is None:
        click.echo("No index yet. Run 'relnotes sync' first.")
        return
    click.echo(f"Vault: {ctx.obj['vault']}")
    click.echo(f"Index version: {data['version']}")
    click.echo(f"Notes indexed: {data['items']}")


@cli.command("watch")
@click.pass_context
def watch_command(ctx: click.Context) -> None:
    """Keep the index up to date while notes change. Ctrl-C to stop."""

    async def body(notes: RelatedNotes) -> None:
        with spinner("Starting"):
            result = await notes.start()
        if result is not None:
            _print_sync_summary(result, "Synced")
        if not isinstance(notes.source, FileSystemVault):
            raise click.ClickException("watch requires a filesystem vault")
        watcher = VaultWatcher(
            vault=notes.source,
            on_upsert=notes.schedule_upsert,
            on_delete=notes.delete_note,
        )
        await watcher.start()
        status(f"Watching {notes.source.root}", style="info")
        try:
            await watcher.wait()
        finally:
            await watcher.stop()
            await notes.scheduler.run_pending_now()

    try:
        _run(ctx, body)
    except KeyboardInterrupt:
        status("Stopped", style="info")


if __name__ == "__main__":
    cli()

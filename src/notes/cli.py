"""notes CLI: local notes with file-backed version history.

Commands:
    notes new [TITLE]              create a note, print its working-copy path
    notes open ID                  snapshot pending edits, print the path
    notes list                     sync all notes, list them
    notes versions ID              sync, show a note's version history
    notes rollback ID [-v N]       copy version N (default: previous) forward
    notes delete ID                remove a note and all its versions
    notes search QUERY             sync, search latest versions
    notes status                   data root, counts, watcher state
    notes daemon                   run the change watcher in the foreground
    notes daemon status|stop       inspect / stop the background watcher
"""

from __future__ import annotations

import shutil
import subprocess
from contextlib import contextmanager
from typing import TYPE_CHECKING

import click

from notes.config import NotesConfig, load_config
from notes.daemon import ensure_watcher, stop_watcher, watcher_status
from notes.errors import NotesError
from notes.snapshot import SnapshotEngine
from notes.store import VersionStore, open_store
from notes.watcher import run_daemon

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> NotesConfig:
    try:
        return load_config()
    except NotesError as exc:
        raise click.ClickException(str(exc)) from exc


def _prepare() -> NotesConfig:
    """Load config and make sure a background watcher is running."""
    cfg = _load_cfg()
    try:
        ensure_watcher(cfg)
    except OSError as exc:
        raise click.ClickException(f"Failed to start notes daemon: {exc}") from exc
    return cfg


@contextmanager
def _session(cfg: NotesConfig) -> Iterator[VersionStore]:
    """Store session whose errors surface as "Error: ..." with exit status 1."""
    try:
        with open_store(cfg) as store:
            yield store
    except NotesError as exc:
        raise click.ClickException(str(exc)) from exc


def _read_store(cfg: NotesConfig) -> VersionStore:
    """Load the store for display only; never rewrites index.json."""
    try:
        return VersionStore.load(cfg)
    except NotesError as exc:
        raise click.ClickException(str(exc)) from exc


def _launch_editor(path: Path, cfg: NotesConfig) -> None:
    """Open path in the configured editor if it is installed. Never blocks."""
    command = cfg.editor.command
    if not command or shutil.which(command) is None:
        return
    try:
        subprocess.Popen(
            [command, str(path)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError:
        click.echo(f"Could not launch editor: {command}", err=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="notes")
def cli() -> None:
    """Local notes with version control."""


# ---------------------------------------------------------------------------
# notes new / open
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title", required=False)
def new(title: str | None) -> None:
    """Create a new note (optional title)."""
    cfg = _prepare()
    with _session(cfg) as store:
        note = store.create(title)
        path = store.working.path(note.slug)
    _launch_editor(path, cfg)
    click.echo(str(path))


@cli.command("open")
@click.argument("identifier")
def open_cmd(identifier: str) -> None:
    """Open an existing note by title or id."""
    cfg = _prepare()
    with _session(cfg) as store:
        path = SnapshotEngine(store).open_note(identifier)
    _launch_editor(path, cfg)
    click.echo(str(path))


# ---------------------------------------------------------------------------
# notes list / versions / ids
# ---------------------------------------------------------------------------


@cli.command("list")
def list_cmd() -> None:
    """List all notes and their latest versions."""
    cfg = _prepare()
    with _session(cfg) as store:
        SnapshotEngine(store).snapshot_all()
        notes = store.notes()

    if not notes:
        click.echo("No notes yet. Run `notes new` to create one.")
        return

    for note in notes:
        click.echo(
            f"- {note.title} (id: {note.slug}) versions: {len(note.versions)} "
            f"current: {note.current_version} path: {cfg.working_file(note.slug)}"
        )


@cli.command()
@click.argument("identifier")
def versions(identifier: str) -> None:
    """List all versions for a note."""
    cfg = _prepare()
    with _session(cfg) as store:
        SnapshotEngine(store).snapshot_all()
        note = store.require(identifier)

    click.echo(f"Versions for {note.title}:")
    for record in note.versions:
        click.echo(f"  v{record.version} @ {record.created_at} ({record.path})")


@cli.command(hidden=True)
def ids() -> None:
    """List note ids (for shell completion)."""
    for slug in _read_store(_load_cfg()).slugs():
        click.echo(slug)


# ---------------------------------------------------------------------------
# notes rollback / delete
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("identifier")
@click.option("--version", "-v", "version", type=int, default=None, help="Version to restore (default: previous)")
def rollback(identifier: str, version: int | None) -> None:
    """Roll back to a specific (or the previous) version.

    \b
    The chosen version is copied forward as a new latest version; the
    versions in between stay in the history.
    """
    cfg = _prepare()
    with _session(cfg) as store:
        path = SnapshotEngine(store).rollback(identifier, version)
    _launch_editor(path, cfg)
    click.echo(str(path))


@cli.command()
@click.argument("identifier")
def delete(identifier: str) -> None:
    """Delete a note by unique id or title, with all of its versions."""
    cfg = _prepare()
    with _session(cfg) as store:
        note = store.delete(identifier)
    click.echo(f"Deleted note: {note.slug}")


# ---------------------------------------------------------------------------
# notes search
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
def search(query: str) -> None:
    """Search notes by text in the latest version."""
    cfg = _prepare()
    with _session(cfg) as store:
        SnapshotEngine(store).snapshot_all()
        matches = store.search(query)

    if not matches:
        click.echo("No matches found.")
        return
    for note in matches:
        click.echo(f"- {note.title} (id: {note.slug})")


# ---------------------------------------------------------------------------
# notes status
# ---------------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Show data root, note counts and watcher status."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg()
    console = Console()

    table = Table(title="notes", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Root", str(cfg.root))
    if cfg.index_path.exists():
        notes = _read_store(cfg).notes()
        table.add_row("Notes", str(len(notes)))
        table.add_row("Versions", str(sum(len(n.versions) for n in notes)))
    else:
        table.add_row("Notes", "[dim]none, run `notes new`[/dim]")

    table.add_row("", "")
    w_status = watcher_status(cfg)
    if not cfg.daemon.autostart:
        w_status += " [dim](autostart disabled)[/dim]"
    table.add_row("Watcher", w_status)
    table.add_row("  Cooldown", f"{cfg.daemon.cooldown:g}s")
    table.add_row("  Log", str(cfg.log_path))

    console.print(table)


# ---------------------------------------------------------------------------
# notes daemon
# ---------------------------------------------------------------------------


@cli.group(invoke_without_command=True)
@click.pass_context
def daemon(ctx: click.Context) -> None:
    """Run the background watcher that syncs versions (foreground, blocks)."""
    if ctx.invoked_subcommand is not None:
        return
    cfg = _load_cfg()
    try:
        run_daemon(cfg)
    except NotesError as exc:
        raise click.ClickException(str(exc)) from exc


@daemon.command("status")
def daemon_status() -> None:
    """Show whether a watcher is running for this data root."""
    cfg = _load_cfg()
    click.echo(f"Watcher: {watcher_status(cfg)}")


@daemon.command("stop")
def daemon_stop() -> None:
    """Stop the background watcher (SIGTERM)."""
    cfg = _load_cfg()
    click.echo(f"Watcher: {stop_watcher(cfg)}")


# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------

cli.add_command(new, name="create")

# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()

"""CLI interface for notesync."""

import logging
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from notesync import __version__
from notesync.config import Settings, get_settings
from notesync.database.repository import NoteRepository
from notesync.exceptions import InvalidSortKeyError, NoteNotFoundError, StorageError
from notesync.models.note import Note, NoteWithCategory
from notesync.models.search import SearchMode, like_pattern

app = typer.Typer(
    name="notesync",
    help="Local note store synchronized with a Nextcloud Notes server.",
    no_args_is_help=True,
)
console = Console()


def load_settings() -> Settings:
    """Load settings or exit with a readable error."""
    try:
        return get_settings()
    except ValidationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        console.print("Make sure your .env file or NOTESYNC_* variables are valid.")
        raise typer.Exit(1)


def get_repository(settings: Settings) -> NoteRepository:
    """Get repository instance, ensuring data directory exists."""
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    return NoteRepository(settings.database_url)


def get_note_service(settings: Settings):
    from notesync.services.note_service import NoteService

    return NoteService(get_repository(settings), settings.account_id)


def _status_label(note: Note) -> str:
    return note.status.value or "[green]clean[/green]"


def _notes_table(title: str, notes: list[Note], categories: Optional[list[str]] = None) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("★")
    table.add_column("Title")
    if categories is not None:
        table.add_column("Category", style="magenta")
    table.add_column("Modified", justify="right")
    table.add_column("Status", style="yellow")

    for i, note in enumerate(notes):
        row = [str(note.id), "★" if note.favorite else "", note.title]
        if categories is not None:
            row.append(categories[i])
        row.extend([str(note.modified), _status_label(note)])
        table.add_row(*row)
    return table


@app.command("list")
def list_notes(
    recent: bool = typer.Option(False, "--recent", "-r", help="Only the most recent notes"),
):
    """List notes, favorites first."""
    settings = load_settings()
    repo = get_repository(settings)

    if recent:
        notes = repo.get_recent_notes(settings.account_id, settings.recent_notes_limit)
        title = "Recent Notes"
    else:
        notes = repo.get_notes(settings.account_id)
        title = "Notes"

    if not notes:
        console.print("[yellow]No notes.[/yellow]")
        raise typer.Exit(0)

    console.print(_notes_table(title, notes))


@app.command()
def search(
    query: str = typer.Argument("", help="Text to search for in title, content and category"),
    category: Optional[str] = typer.Option(
        None, "--category", "-c", help="Only this category and its subcategories"
    ),
    favorites: bool = typer.Option(False, "--favorites", "-f", help="Only favorites"),
    uncategorized: bool = typer.Option(
        False, "--uncategorized", "-u", help="Only notes without a category"
    ),
    sort: Optional[str] = typer.Option(
        None, "--sort", "-s", help="Sort clause, e.g. 'modified desc' or 'title asc'"
    ),
):
    """Search notes."""
    settings = load_settings()
    repo = get_repository(settings)

    if category:
        mode = SearchMode.CATEGORY
    elif favorites:
        mode = SearchMode.FAVORITES
    elif uncategorized:
        mode = SearchMode.UNCATEGORIZED
    else:
        mode = SearchMode.ALL

    try:
        results: list[NoteWithCategory] = repo.search_notes(
            settings.account_id,
            like_pattern(query),
            mode,
            sort or settings.default_sort,
            category,
        )
    except InvalidSortKeyError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No matching notes.[/yellow]")
        raise typer.Exit(0)

    console.print(
        _notes_table(
            f"Search: {query or '*'} ({mode.value})",
            [r.note for r in results],
            [r.category for r in results],
        )
    )


@app.command()
def add(
    title: str = typer.Argument(..., help="Note title"),
    content: str = typer.Option("", "--content", "-m", help="Note content"),
    category: str = typer.Option("", "--category", "-c", help="Category, '/' for nesting"),
    favorite: bool = typer.Option(False, "--favorite", "-f", help="Mark as favorite"),
):
    """Create a note locally; it is pushed on the next sync."""
    service = get_note_service(load_settings())
    note = service.create_note(title, content, category, favorite)
    console.print(f"[green]✓[/green] Created note {note.id}")


@app.command()
def edit(
    note_id: int = typer.Argument(..., help="Local note id"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    content: Optional[str] = typer.Option(None, "--content", "-m"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
):
    """Edit a note; it is pushed on the next sync."""
    service = get_note_service(load_settings())
    try:
        service.edit_note(note_id, title=title, content=content, category=category)
    except NoteNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Updated note {note_id}")


@app.command()
def favorite(note_id: int = typer.Argument(..., help="Local note id")):
    """Toggle the favorite flag of a note."""
    service = get_note_service(load_settings())
    try:
        note = service.toggle_favorite(note_id)
    except NoteNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    state = "favorite" if note.favorite else "not favorite"
    console.print(f"[green]✓[/green] Note {note_id} is now {state}")


@app.command()
def delete(note_id: int = typer.Argument(..., help="Local note id")):
    """Delete a note; the server copy is removed on the next sync."""
    service = get_note_service(load_settings())
    try:
        service.delete_note(note_id)
    except NoteNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Note {note_id} marked for deletion")


@app.command()
def pending():
    """Show notes waiting to be pushed."""
    settings = load_settings()
    repo = get_repository(settings)
    notes = repo.get_local_modified_notes(settings.account_id)

    if not notes:
        console.print("[green]Nothing to push.[/green]")
        raise typer.Exit(0)

    console.print(_notes_table("Pending Changes", notes))


@app.command()
def categories():
    """List categories."""
    settings = load_settings()
    repo = get_repository(settings)

    table = Table(title="Categories")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title", style="magenta")
    for category in repo.get_categories(settings.account_id):
        table.add_row(str(category.id), category.title)
    console.print(table)


@app.command()
def stats():
    """Show note statistics."""
    settings = load_settings()

    if not settings.database_path.exists():
        console.print("[yellow]Database not yet initialized. Run 'notesync sync' first.[/yellow]")
        raise typer.Exit(0)

    repo = get_repository(settings)
    stats = repo.get_stats(settings.account_id)

    table = Table(title="notesync Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Total Notes", str(stats["total_notes"]))
    table.add_row("  Favorites", str(stats["favorite_notes"]))
    table.add_row("  Others", str(stats["non_favorite_notes"]))
    table.add_row("", "")
    table.add_row("Pending Push", str(stats["pending_notes"]))
    table.add_row("  Deletions", str(stats["pending_deletions"]))

    console.print(table)


@app.command()
def sync():
    """Push local changes to the server, then pull remote changes."""
    settings = load_settings()
    if not settings.server_url:
        console.print("[red]NOTESYNC_SERVER_URL is not configured.[/red]")
        raise typer.Exit(1)

    from notesync.services.notes_api import NotesAPIClient, NotesAPIError
    from notesync.services.sync_driver import SyncDriver

    client = NotesAPIClient(
        settings.server_url,
        settings.username,
        settings.password,
        timeout=settings.request_timeout,
    )
    driver = SyncDriver(
        get_repository(settings),
        client,
        settings.account_id,
        max_attempts=settings.sync_max_attempts,
        backoff_min=settings.sync_backoff_min,
        backoff_max=settings.sync_backoff_max,
    )

    console.print(f"[bold blue]Synchronizing with {settings.server_url}...[/bold blue]")
    try:
        with console.status("[yellow]Syncing...[/yellow]"):
            result = driver.synchronize()
    except (NotesAPIError, StorageError) as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Sync Summary")
    table.add_column("Step", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Pushed", str(result.pushed))
    table.add_row("Push skipped (edited during sync)", str(result.push_skipped))
    table.add_row("Deleted on server", str(result.deleted_remote))
    table.add_row("Pulled", str(result.pulled))
    table.add_row("New from server", str(result.created_local))
    table.add_row("Removed locally", str(result.removed_local))
    console.print(table)


@app.command()
def config():
    """Show current configuration."""
    settings = load_settings()

    table = Table(title="notesync Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    password_masked = "***" if settings.password else "(not set)"

    table.add_row("Server URL", settings.server_url or "(not set)")
    table.add_row("Username", settings.username or "(not set)")
    table.add_row("Password", password_masked)
    table.add_row("Account ID", str(settings.account_id))
    table.add_row("Database Path", str(settings.database_path))
    table.add_row("Default Sort", settings.default_sort)
    table.add_row(
        "Sync Retry",
        f"{settings.sync_max_attempts} attempts, "
        f"{settings.sync_backoff_min}-{settings.sync_backoff_max}s backoff",
    )
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    console.print(f"notesync v{__version__}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    notesync - local notes with optimistic-concurrency sync.

    Edits are stored locally and pushed to the server on sync; remote
    changes are pulled into notes without pending local edits.
    """
    level = "DEBUG" if verbose else load_settings().log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    app()

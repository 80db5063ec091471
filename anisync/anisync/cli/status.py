"""
Status command for AniSync CLI.

Catalog row counts, the review backlog and recent sync runs.
"""
import click
import logging
from typing import Optional

from rich import box
from rich.table import Table
from rich.columns import Columns

from .base import CONTENT_TYPE_CHOICES, console, get_store
from ..db import Author, Genre, PendingMatch, Studio, Title, TitleAuthor, TitleGenre, TitleStudio
from .. import constants as c

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    c.STATUS_RUNNING: "yellow",
    c.STATUS_COMPLETED: "green",
    c.STATUS_FAILED: "red",
}


@click.command()
@click.option("--runs", default=10, show_default=True, help="Number of recent runs to show.")
@click.option("--type", "content_type", type=click.Choice(CONTENT_TYPE_CHOICES), default=None)
def status(runs: int, content_type: Optional[str]) -> None:
    """Show catalog counts and recent sync runs."""
    store = get_store()

    counts = Table(title="Catalog", box=box.ROUNDED, show_header=False)
    counts.add_column("Table", style="cyan")
    counts.add_column("Rows", justify="right")
    for label, model in (
        ("Titles", Title), ("Genres", Genre), ("Studios", Studio), ("Authors", Author),
        ("Title-genre links", TitleGenre), ("Title-studio links", TitleStudio),
        ("Title-author links", TitleAuthor),
    ):
        counts.add_row(label, f"{store.count(model):,}")

    backlog = Table(title="Review queue", box=box.ROUNDED, show_header=False)
    backlog.add_column("Type", style="cyan")
    backlog.add_column("Open", justify="right")
    for ct in CONTENT_TYPE_CHOICES:
        backlog.add_row(ct, str(len(store.list_pending(ct))))
    backlog.add_row("[dim]all time[/dim]", f"[dim]{store.count(PendingMatch)}[/dim]")

    console.print(Columns([counts, backlog]))

    recent = store.recent_runs(limit=runs, content_type=content_type)
    if not recent:
        console.print("[dim]No sync runs recorded yet.[/dim]")
        return

    table = Table(title="Recent runs", box=box.SIMPLE_HEAVY)
    table.add_column("Started", style="dim")
    table.add_column("Type")
    table.add_column("Operation")
    table.add_column("Status")
    table.add_column("Page", justify="right")
    table.add_column("Items", justify="right")
    table.add_column("Error", overflow="fold")
    for run in recent:
        style = STATUS_STYLES.get(run.status, "white")
        table.add_row(
            run.started_at.strftime("%Y-%m-%d %H:%M") if run.started_at else "-",
            run.content_type,
            run.operation_type,
            f"[{style}]{run.status}[/{style}]",
            str(run.current_page or "-"),
            str(run.processed_items),
            run.error_message or "",
        )
    console.print(table)

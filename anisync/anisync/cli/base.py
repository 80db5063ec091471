"""
Shared CLI utilities.

Store construction, error exits and the rich renderings of sync and
reconcile results used by several commands.
"""
import sys
import json
import logging
from typing import Any, Dict

from rich import box
from rich.table import Table
from rich.panel import Panel

from ..config import get_config
from ..logging import StoreError, console
from ..models import ReconcileResult, SyncResult
from ..store import CatalogStore

logger = logging.getLogger(__name__)

CONTENT_TYPE_CHOICES = ("anime", "manga")


def get_store() -> CatalogStore:
    """
    Opens the configured database, creating missing tables.

    Raises:
        SystemExit: If the database can't be reached.
    """
    config = get_config()
    try:
        store = CatalogStore.from_url(config.database.url, echo=config.database.echo)
        store.ping()
    except StoreError as e:
        logger.error(f"Database unavailable: {e}")
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    return store


def fail(message: str) -> None:
    logger.error(message)
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def render_sync_result(result: SyncResult, max_errors: int) -> None:
    table = Table(title=f"{result.provider} {result.content_type} sync", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Pages", str(result.pages))
    table.add_row("Processed", str(result.processed))
    table.add_row("Created", f"[green]{result.inserted}[/green]")
    table.add_row("Updated", f"[yellow]{result.updated}[/yellow]")
    table.add_row("Genres created", str(result.relations.genres_created))
    table.add_row("Studios created", str(result.relations.studios_created))
    table.add_row("Authors created", str(result.relations.authors_created))
    table.add_row("Relationships created", str(result.relations.relationships_created))
    table.add_row("Errors", f"[red]{result.errors}[/red]" if result.errors else "0")
    console.print(table)
    _render_errors(result.error_messages, max_errors)


def render_reconcile_result(result: ReconcileResult, max_errors: int) -> None:
    table = Table(title=f"Kitsu {result.content_type} reconciliation", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Processed", str(result.processed_count))
    table.add_row("Confident matches", f"[green]{result.confident_matches}[/green]")
    table.add_row("Uncertain (queued)", f"[yellow]{result.uncertain_matches}[/yellow]")
    table.add_row("New titles", f"[cyan]{result.new_items}[/cyan]")
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Errors", f"[red]{len(result.errors)}[/red]" if result.errors else "0")
    console.print(table)
    _render_errors(result.errors, max_errors)


def _render_errors(errors, max_errors: int) -> None:
    if not errors:
        return
    shown = "\n".join(f"- {e}" for e in errors[:max_errors])
    if len(errors) > max_errors:
        shown += f"\n[dim]... and {len(errors) - max_errors} more (see log file)[/dim]"
    console.print(Panel(shown, title="Errors", border_style="red"))


def print_json(payload: Dict[str, Any]) -> None:
    console.print_json(json.dumps(payload, default=str))

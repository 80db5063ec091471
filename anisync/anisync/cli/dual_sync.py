import click
import logging
from typing import Optional

from rich import box
from rich.table import Table

from .base import console, get_store
from ..config import get_config
from ..jobs import JobRunner, dispatch_dual_sync, settle
from ..logging import log_step, log_substep

logger = logging.getLogger(__name__)


@click.command(name="dual-sync")
@click.option("--pages", "max_pages", type=int, default=None, help="Maximum pages per content type.")
def dual_sync(max_pages: Optional[int]) -> None:
    """Sync anime and manga from AniList concurrently."""
    config = get_config()
    get_store()  # fail fast before starting threads
    log_step("Dual sync: anime + manga")

    with JobRunner(max_workers=config.processing.thread_pool_size) as runner:
        jobs = dispatch_dual_sync(runner, max_pages=max_pages)
        with console.status("[bold blue]Running anime and manga syncs..."):
            outcomes = settle(jobs)

    table = Table(title="Dual sync", box=box.ROUNDED)
    table.add_column("Job", style="cyan")
    table.add_column("Outcome")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Errors", justify="right")
    for outcome in outcomes:
        log_substep(f"{outcome['name']}: {outcome['status']}")
        if outcome["status"] == "fulfilled":
            result = outcome["value"]
            table.add_row(outcome["name"], "[green]ok[/green]", str(result.inserted),
                          str(result.updated), str(result.errors))
        else:
            table.add_row(outcome["name"], f"[red]{outcome.get('reason', outcome['status'])}[/red]", "-", "-", "-")
    console.print(table)

import click
import logging

from .base import CONTENT_TYPE_CHOICES, console, fail, get_store, render_reconcile_result
from ..config import get_config
from ..logging import AniSyncError, log_step
from ..reconciler import reconcile as run_reconcile

logger = logging.getLogger(__name__)


@click.command()
@click.argument("content_type", type=click.Choice(CONTENT_TYPE_CHOICES))
@click.option("--limit", type=int, default=20, show_default=True, help="Kitsu records to examine.")
@click.option("--days-back", type=int, default=7, show_default=True, help="Only records updated in this many days.")
def reconcile(content_type: str, limit: int, days_back: int) -> None:
    """Match recently updated Kitsu records against the catalog."""
    logger.info(f"Reconcile command started (type={content_type}, limit={limit}, days_back={days_back})")
    log_step(f"Reconciling Kitsu {content_type} (last {days_back} days)")
    store = get_store()

    with console.status("[bold blue]Fetching and matching Kitsu records..."):
        try:
            result = run_reconcile(content_type, limit=limit, days_back=days_back, store=store)
        except AniSyncError as e:
            fail(str(e))
            return

    render_reconcile_result(result, get_config().match.max_reported_errors)
    if result.uncertain_matches:
        console.print(f"[yellow]{result.uncertain_matches} match(es) need review: run 'anisync pending'.[/yellow]")

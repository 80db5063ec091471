"""
Sync command for AniSync CLI.

Pulls catalog pages from AniList or Jikan into the database.
"""
import click
import logging
from typing import Optional

from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn

from .base import CONTENT_TYPE_CHOICES, console, fail, get_store, render_sync_result
from ..config import get_config
from ..logging import AniSyncError, log_step
from ..sync_engine import run_sync

logger = logging.getLogger(__name__)


@click.command()
@click.argument("content_type", type=click.Choice(CONTENT_TYPE_CHOICES))
@click.option("--pages", "max_pages", type=int, default=None, help="Maximum pages to fetch (default from SYNC_MAX_PAGES).")
@click.option("--start-page", type=int, default=1, show_default=True, help="First page to fetch.")
@click.option("--provider", type=click.Choice(["anilist", "jikan"]), default="anilist", show_default=True)
@click.option("--complete", is_flag=True, help="Stop when the provider reports no further pages.")
@click.option("--resume", is_flag=True, help="Continue after the last completed page of this operation.")
@click.option("--dry-run", is_flag=True, help="Fetch and normalize without writing.")
def sync(content_type: str, max_pages: Optional[int], start_page: int, provider: str,
         complete: bool, resume: bool, dry_run: bool) -> None:
    """
    Import CONTENT_TYPE (anime or manga) from a catalog provider.
    Existing titles are updated by external id, new ones inserted with details and relations.
    """
    logger.info(f"Sync command started (type={content_type}, provider={provider}, pages={max_pages}, "
                f"start={start_page}, complete={complete}, resume={resume}, dry_run={dry_run})")
    config = get_config()
    if dry_run:
        config.dry_run = True
    total_pages = max_pages or config.sync.max_pages

    log_step(f"Syncing {content_type} from {provider}")
    store = get_store()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total} pages"),
        console=console,
    ) as progress:
        task = progress.add_task(f"[bold cyan]{provider} {content_type}...", total=total_pages)

        def on_page(page_num, result):
            progress.update(
                task, advance=1,
                description=f"[bold cyan]{provider} {content_type}[/bold cyan] page {page_num} "
                            f"([green]+{result.inserted}[/green] / [yellow]~{result.updated}[/yellow])",
            )

        try:
            result = run_sync(
                content_type,
                max_pages=total_pages,
                start_page=start_page,
                provider=provider,
                complete=complete,
                resume=resume,
                store=store,
                on_page=on_page,
            )
        except AniSyncError as e:
            fail(str(e))
            return
        progress.update(task, completed=total_pages)

    render_sync_result(result, config.sync.max_reported_errors)

"""
Review-queue commands: list pending matches and record decisions.
"""
import click
import logging
from typing import Optional

from rich import box
from rich.table import Table

from .base import CONTENT_TYPE_CHOICES, console, fail, get_store
from ..logging import AniSyncError
from ..review import list_pending, resolve as resolve_match

logger = logging.getLogger(__name__)


def _confidence_style(score: float) -> str:
    if score >= 0.7:
        return "green"
    if score >= 0.5:
        return "yellow"
    return "red"


@click.command()
@click.option("--type", "content_type", type=click.Choice(CONTENT_TYPE_CHOICES), default=None,
              help="Only show one content type.")
@click.option("--candidates", is_flag=True, help="Show the candidate titles of each match.")
def pending(content_type: Optional[str], candidates: bool) -> None:
    """List uncertain matches waiting for a decision."""
    store = get_store()
    matches = list_pending(store, content_type)
    if not matches:
        console.print("[green]No pending matches.[/green]")
        return

    table = Table(title=f"Pending matches ({len(matches)})", box=box.ROUNDED)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("Kitsu", justify="right")
    table.add_column("Title", style="white")
    table.add_column("Best", justify="right")
    table.add_column("Candidates")

    for match in matches:
        style = _confidence_style(match.confidence_score)
        if candidates:
            cands = "\n".join(
                f"#{cand['title_id']} {cand['title']} ({cand['similarity_score']:.0%})"
                for cand in match.potential_matches
            )
        else:
            cands = str(len(match.potential_matches))
        table.add_row(
            str(match.id),
            match.content_type,
            str(match.kitsu_id),
            match.title + (f"\n[dim]{match.title_english}[/dim]" if match.title_english else ""),
            f"[{style}]{match.confidence_score:.0%}[/{style}]",
            cands,
        )
    console.print(table)


@click.command()
@click.argument("match_id", type=int)
@click.argument("decision", type=click.Choice(["approved", "rejected", "merged"]))
@click.option("--target", "target_title_id", type=int, default=None, help="Title id to merge into (merged only).")
@click.option("--by", "reviewed_by", default=None, help="Reviewer recorded on the decision.")
def resolve(match_id: int, decision: str, target_title_id: Optional[int], reviewed_by: Optional[str]) -> None:
    """Record DECISION (approved, rejected, merged) for pending match MATCH_ID."""
    logger.info(f"Resolve command (match={match_id}, decision={decision}, target={target_title_id})")
    store = get_store()
    try:
        match = resolve_match(store, match_id, decision, target_title_id=target_title_id, reviewed_by=reviewed_by)
    except AniSyncError as e:
        fail(str(e))
        return

    msg = f"[green]Match {match.id} {match.admin_decision}[/green]"
    if match.resolved_title_id:
        msg += f" -> title [cyan]{match.resolved_title_id}[/cyan]"
    console.print(msg)

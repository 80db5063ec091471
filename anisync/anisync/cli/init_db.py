import click
import logging

from sqlalchemy.exc import SQLAlchemyError

from .base import console, fail
from ..config import get_config
from ..db import drop_db, init_db as create_schema, make_engine

logger = logging.getLogger(__name__)


@click.command(name="init-db")
@click.option("--reset", is_flag=True, help="Drop all tables first. Deletes all data.")
def init_db(reset: bool) -> None:
    """Create the catalog tables in the configured database."""
    url = get_config().database.url
    engine = make_engine(url)
    if reset:
        if not click.confirm("This drops every AniSync table. Continue?"):
            console.print("[yellow]Aborted.[/yellow]")
            return
        drop_db(engine)
        logger.warning(f"Dropped schema on {engine.url.render_as_string(hide_password=True)}")
    try:
        create_schema(engine)
    except SQLAlchemyError as e:
        fail(f"Could not create schema: {e}")
        return
    finally:
        engine.dispose()
    console.print(f"[green]Schema ready on {engine.url.render_as_string(hide_password=True)}[/green]")

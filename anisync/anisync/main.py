import logging
import click
from dotenv import load_dotenv, find_dotenv

# Load environment variables immediately
load_dotenv(find_dotenv())

from .config import get_config
from .logging import setup_logging, set_log_level
from .cli.sync import sync
from .cli.reconcile import reconcile
from .cli.pending import pending, resolve
from .cli.dual_sync import dual_sync
from .cli.status import status
from .cli.invoke import invoke
from .cli.init_db import init_db

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show INFO logs on the console.")
@click.option("--debug", is_flag=True, help="Log everything, including API calls.")
def cli(verbose: bool, debug: bool):
    """AniSync: anime/manga catalog ingestion and reconciliation."""
    log_config = get_config().logging
    setup_logging(log_config.log_file, log_config.file_level, log_config.console_level)
    if debug:
        set_log_level("DEBUG")
    elif verbose:
        set_log_level("INFO", handler_type="console", clean=True)


cli.add_command(sync)
cli.add_command(reconcile)
cli.add_command(pending)
cli.add_command(resolve)
cli.add_command(dual_sync)
cli.add_command(status)
cli.add_command(invoke)
cli.add_command(init_db)


if __name__ == "__main__":
    cli()

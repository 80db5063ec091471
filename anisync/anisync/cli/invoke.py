import sys
import click
import logging
from typing import Optional

from .base import print_json
from .. import api

logger = logging.getLogger(__name__)

HANDLERS = {
    "sync": api.handle_sync,
    "reconcile": api.handle_reconcile,
    "resolve": api.handle_resolve,
    "dual-sync": api.handle_dual_sync,
}


@click.command()
@click.argument("function", type=click.Choice(sorted(HANDLERS)))
@click.argument("body", required=False)
@click.option("--file", "body_file", type=click.File("r"), default=None, help="Read the JSON body from a file ('-' for stdin).")
def invoke(function: str, body: Optional[str], body_file) -> None:
    """
    Call a trigger FUNCTION with a JSON BODY and print the JSON response.

    Example: anisync invoke sync '{"contentType": "anime", "maxPages": 2}'
    """
    if body_file is not None:
        body = body_file.read()
    logger.info(f"Invoking {function}")
    response = HANDLERS[function](body)
    print_json(response)
    if not response.get("success"):
        sys.exit(1)

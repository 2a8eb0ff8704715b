"""Shared rich console and logging setup."""

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()

QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def configure_logging(verbose: bool = False, level: str | None = None) -> None:
    """Route stdlib logging through rich on the shared console."""
    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or "INFO").upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    handler = RichHandler(
        console=console,
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=resolved,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import click

from stocksaga.infrastructure.cli.event_commands import event_deliver
from stocksaga.infrastructure.cli.inbox_commands import inbox_show
from stocksaga.infrastructure.cli.reservation_commands import (
    reservation_expire,
    reservation_show,
)
from stocksaga.infrastructure.cli.stock_commands import stock_set, stock_show
from stocksaga.infrastructure.config import Settings
from stocksaga.infrastructure.logging_config import configure_logging


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the JSON stores (overrides STOCKSAGA_DATA_DIR).",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None) -> None:
    """Stock reservation saga (inventory side)."""
    configure_logging()
    settings = Settings.from_env()
    if data_dir is not None:
        settings = replace(settings, data_dir=data_dir)
    ctx.obj = settings


@cli.group()
def stock() -> None:
    """Manage product stock."""


@cli.group()
def reservation() -> None:
    """Inspect and sweep reservations."""


@cli.group()
def event() -> None:
    """Feed inbound order events."""


@cli.group()
def inbox() -> None:
    """Inspect processed events."""


# Register subcommands
stock.add_command(stock_set)
stock.add_command(stock_show)
reservation.add_command(reservation_show)
reservation.add_command(reservation_expire)
event.add_command(event_deliver)
inbox.add_command(inbox_show)

"""CLI commands for product stock."""

from __future__ import annotations

import click

from stocksaga.application.set_stock import SetStockHandler
from stocksaga.application.show_stock import ShowStockHandler
from stocksaga.domain.exceptions import DomainException
from stocksaga.infrastructure.bootstrap import build


@click.command("set")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--name", default=None, help="Product name (used when opening new stock).")
@click.option("--quantity", required=True, type=int, help="Available quantity.")
@click.pass_obj
def stock_set(settings, product_id: str, name: str | None, quantity: int) -> None:
    """Open or overwrite the available stock of a product."""
    try:
        container = build(settings)
        handler = SetStockHandler(container.stock_repo, container.ledger)
        line = handler.handle(product_id=product_id, product_name=name, quantity=quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Stock for '{line.product_name}' set to {line.available} (version {line.version})")


@click.command("show")
@click.pass_obj
def stock_show(settings) -> None:
    """Show current stock levels."""
    try:
        lines = ShowStockHandler(build(settings).stock_repo).handle()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not lines:
        click.echo("No stock records found.")
        return

    click.echo(f"{'Product ID':<38} {'Name':<20} {'Available':>10} {'Version':>8}")
    click.echo("-" * 79)
    for line in lines:
        click.echo(
            f"{line.product_id:<38} {line.product_name:<20} {line.available:>10} {line.version:>8}"
        )

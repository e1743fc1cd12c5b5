"""CLI commands for stock reservations."""

from __future__ import annotations

import json

import click

from stocksaga.application.expire_reservations import FindStaleReservationsHandler
from stocksaga.application.show_reservations import ShowReservationsHandler
from stocksaga.domain.exceptions import DomainException
from stocksaga.infrastructure.bootstrap import build


@click.command("show")
@click.option("--order", "order_id", default=None, help="Order ID whose reservations to list.")
@click.option("--id", "reservation_id", default=None, help="A single reservation ID.")
@click.pass_obj
def reservation_show(settings, order_id: str | None, reservation_id: str | None) -> None:
    """Show reservations for an order, or one reservation by ID."""
    if bool(order_id) == bool(reservation_id):
        raise click.UsageError("Give exactly one of --order or --id.")

    try:
        handler = ShowReservationsHandler(build(settings).store)
        dtos = handler.for_order(order_id) if order_id else [handler.by_id(reservation_id)]
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"  {'Reservation':<38} {'Product':<20} {'Qty':>5} {'Status':<9} {'Processed'}")
    click.echo(f"  {'-'*95}")
    for dto in dtos:
        click.echo(
            f"  {dto.id:<38} {dto.product_name or dto.product_id:<20} {dto.quantity:>5} "
            f"{dto.status:<9} {dto.processed_at or '-'}"
        )


@click.command("expire")
@click.option(
    "--deliver",
    is_flag=True,
    default=False,
    help="Feed the cancellation events through the consumer instead of printing them.",
)
@click.pass_obj
def reservation_expire(settings, deliver: bool) -> None:
    """Cancel orders whose reservations outlived the fulfillment window."""
    try:
        container = build(settings)
        payloads = FindStaleReservationsHandler(
            container.store, settings.reservation_window
        ).handle()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not payloads:
        click.echo("No stale reservations.")
        return

    for payload in payloads:
        if deliver:
            delivery = container.consumer.deliver(payload)
            click.echo(
                f"{payload['order_id']}: {delivery.outcome.kind.value} "
                f"(ack={'yes' if delivery.ack else 'no'})"
            )
        else:
            click.echo(json.dumps(payload))

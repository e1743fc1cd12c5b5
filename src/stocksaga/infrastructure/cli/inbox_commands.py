"""CLI commands for the event inbox."""

from __future__ import annotations

import click

from stocksaga.application.show_inbox import ShowInboxHandler
from stocksaga.domain.exceptions import DomainException
from stocksaga.infrastructure.bootstrap import build


@click.command("show")
@click.pass_obj
def inbox_show(settings) -> None:
    """List processed events and what handling decided."""
    try:
        entries = ShowInboxHandler(build(settings).gate).handle()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not entries:
        click.echo("Inbox is empty.")
        return

    for entry in entries:
        click.echo(
            f"{entry.received_at}  {entry.event_id}  {entry.event_type:<26} "
            f"order={entry.order_id}  {entry.outcome or 'PENDING'}  {entry.details}"
        )

"""CLI commands for inbound order events."""

from __future__ import annotations

import json

import click

from stocksaga.domain.exceptions import DomainException
from stocksaga.infrastructure.bootstrap import build


def _read_payloads(file, raw_json: str | None) -> list:
    """Decode a single --json payload or a JSON-lines file."""
    if raw_json is not None:
        try:
            return [json.loads(raw_json)]
        except ValueError as exc:
            raise click.BadParameter(f"Invalid JSON: {exc}", param_hint="--json")

    payloads = []
    for lineno, line in enumerate(file, start=1):
        if not line.strip():
            continue
        try:
            payloads.append(json.loads(line))
        except ValueError as exc:
            raise click.BadParameter(f"Line {lineno} is not valid JSON: {exc}", param_hint="--file")
    return payloads


@click.command("deliver")
@click.option("--file", "file", type=click.File("r"), default=None, help="JSON-lines file of events.")
@click.option("--json", "raw_json", default=None, help="A single event as JSON.")
@click.pass_obj
def event_deliver(settings, file, raw_json: str | None) -> None:
    """Deliver inbound events to the reservation saga."""
    if (file is None) == (raw_json is None):
        raise click.UsageError("Give exactly one of --file or --json.")

    payloads = _read_payloads(file, raw_json)
    try:
        deliveries = build(settings).consumer.deliver_many(payloads)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    for delivery in deliveries:
        outcome = delivery.outcome
        flags = " REVIEW" if outcome.needs_review else ""
        click.echo(
            f"{outcome.event_id or '?'} {outcome.event_type}: {outcome.kind.value}"
            f" ack={'yes' if delivery.ack else 'no'}{flags}  {outcome.summary()}"
        )

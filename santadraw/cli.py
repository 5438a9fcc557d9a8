from __future__ import annotations

import click
from flask.cli import AppGroup

from .extensions import get_engine
from .services.assignments import AssignmentError, UnknownEvent
from .services.export import event_csv

draw_cli = AppGroup("draw", help="Run, reset and export event draws.")


def _fail(e: AssignmentError):
    raise click.ClickException(f"{type(e).__name__}: {e}")


@draw_cli.command("run")
@click.argument("event_id", type=int)
def run_command(event_id: int):
    """Draw EVENT_ID (no-op if already drawn)."""
    try:
        mapping = get_engine().run_draw(event_id)
    except AssignmentError as e:
        _fail(e)
    click.echo(f"Event {event_id}: {len(mapping)} participants assigned.")


@draw_cli.command("reset")
@click.argument("event_id", type=int)
@click.option("--force", is_flag=True, help="Also reset an event stuck in \"drawing\". Only when no draw is running.")
@click.confirmation_option(prompt="This clears every assignment of the event. Continue?")
def reset_command(event_id: int, force: bool):
    """Clear all assignments of EVENT_ID."""
    try:
        cleared = get_engine().reset_draw(event_id, force=force)
    except AssignmentError as e:
        _fail(e)
    click.echo(f"Event {event_id}: cleared {cleared} participants.")


@draw_cli.command("export")
@click.argument("event_id", type=int)
@click.option("-o", "--output", type=click.File("w"), default="-", help="Where to write the CSV.")
def export_command(event_id: int, output):
    """Write the finished draw of EVENT_ID as CSV."""
    engine = get_engine()
    try:
        event = engine.store.get_event(event_id)
        if event is None:
            raise UnknownEvent(f"No such event: {event_id}")
        body = event_csv(event, engine.store.list_participants(event_id))
    except AssignmentError as e:
        _fail(e)
    output.write(body)

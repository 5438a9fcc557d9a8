from __future__ import annotations

import csv
import io

from ..models import DRAW_DONE
from .assignments import DrawNotFinished

CSV_HEADER = ("name", "assigned_to_name")


def assignment_csv(participants: list) -> str:
    """One row per participant: their name and their recipient's name."""
    by_id = {p.id: p for p in participants}
    missing = [p.name for p in participants if p.assigned_to_id not in by_id]
    if not participants or missing:
        raise DrawNotFinished("The draw has not been run for every participant yet.")

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for p in participants:
        writer.writerow((p.name, by_id[p.assigned_to_id].name))
    return buf.getvalue()


def event_csv(event, participants: list) -> str:
    """assignment_csv for an event whose draw has committed."""
    if event.draw_status != DRAW_DONE:
        raise DrawNotFinished(f"The draw of event {event.id} is {event.draw_status}, not drawn.")
    return assignment_csv(participants)

from __future__ import annotations

from ..extensions import db, get_engine
from ..models import Event, Participant, DRAW_OPEN
from .assignments import DrawLocked, UnknownParticipant


def create_event(owner_id: int, name: str) -> Event:
    event = Event(owner_id=owner_id, name=name)
    db.session.add(event)
    db.session.commit()
    return event


def delete_event(event: Event) -> None:
    db.session.delete(event)
    db.session.commit()


def event_summary(event: Event) -> dict:
    participants = event.participants
    return {
        "id": event.id,
        "name": event.name,
        "created_at": event.created_at.isoformat(),
        "draw_status": event.draw_status,
        "drawn_at": event.drawn_at.isoformat() if event.drawn_at else None,
        "total_participants": len(participants),
        "drawn_count": sum(1 for p in participants if p.is_drawn),
        "revealed_count": sum(1 for p in participants if p.revealed_at is not None),
    }


def participant_summary(p: Participant) -> dict:
    # Recipient stays hidden here; it is only shown through a reveal or the export.
    return {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "is_drawn": p.is_drawn,
        "revealed": p.revealed_at is not None,
    }


def add_participants(event: Event, entries: list[dict]) -> list[Participant]:
    """
    Adds participants in bulk. Names must be non-blank and unique within the event.
    Raises ValueError on bad input and DrawLocked once the draw has run.
    """
    if event.draw_status != DRAW_OPEN:
        raise DrawLocked("The draw already ran. Reset it before adding participants.")

    taken = {p.name.casefold() for p in event.participants}
    added: list[Participant] = []
    for entry in entries:
        name = entry.get("name") or ""
        email = entry.get("email") or ""
        if not isinstance(name, str) or not isinstance(email, str):
            raise ValueError("Participant name and email must be text.")
        name = name.strip()
        email = email.strip() or None
        if not name:
            raise ValueError("Participant name is required.")
        if name.casefold() in taken:
            raise ValueError(f"{name} is already in this event.")
        taken.add(name.casefold())
        added.append(Participant(event_id=event.id, name=name, email=email))

    db.session.add_all(added)
    db.session.commit()
    return added


def remove_participant(event: Event, participant_id: int) -> bool:
    """
    Deletes a participant. A drawn event is reset first, since the remaining
    assignment would no longer be a bijection. Returns True if a reset happened.
    """
    p = Participant.query.filter_by(id=participant_id, event_id=event.id).first()
    if p is None:
        raise UnknownParticipant(f"Participant {participant_id} is not part of event {event.id}.")

    was_reset = False
    if event.draw_status != DRAW_OPEN:
        get_engine().reset_draw(event.id)
        was_reset = True

    db.session.delete(p)
    db.session.commit()
    return was_reset

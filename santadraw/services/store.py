from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Event, Participant, DRAW_OPEN, DRAW_IN_PROGRESS, DRAW_DONE

logger = logging.getLogger(__name__)

PARTICIPANT_FIELDS = {"assigned_to_id", "is_drawn", "revealed_at", "name", "email"}


class SqlParticipantStore:
    """
    Participant store backed by the Flask-SQLAlchemy session.

    Every write commits on its own and reports success as a bool; failed commits
    are rolled back and logged, never raised.
    """

    def get_event(self, event_id: int) -> Event | None:
        return db.session.get(Event, event_id)

    def list_participants(self, event_id: int) -> list[Participant]:
        return Participant.query.filter_by(event_id=event_id).order_by(Participant.id.asc()).all()

    def list_events_by_user(self, user_id: int) -> list[Event]:
        return Event.query.filter_by(owner_id=user_id).order_by(Event.created_at.desc(), Event.id.desc()).all()

    def update_participant(self, participant_id: int, fields: dict) -> bool:
        unknown = set(fields) - PARTICIPANT_FIELDS
        if unknown:
            raise ValueError(f"Unknown participant fields: {sorted(unknown)}")

        p = db.session.get(Participant, participant_id)
        if p is None:
            logger.warning("Participant %s vanished before update", participant_id)
            return False
        for key, value in fields.items():
            setattr(p, key, value)
        return self._commit("update participant %s" % participant_id)

    def mark_revealed(self, participant_id: int, at: datetime) -> bool:
        """Stamp revealed_at unless someone already did. False when nothing changed."""
        return self._conditional_update(
            Participant.query.filter(Participant.id == participant_id, Participant.revealed_at.is_(None)),
            {"revealed_at": at},
            "mark participant %s revealed" % participant_id,
        )

    # --- Draw status transitions ---
    # Each transition only applies to the event at the draw_version the caller
    # read, and bumps it. Claims return the new version, None if they lost.

    def claim_draw(self, event_id: int, version: int) -> int | None:
        """open -> drawing."""
        return self._transition(event_id, version, (DRAW_OPEN,), DRAW_IN_PROGRESS)

    def complete_draw(self, event_id: int, version: int) -> bool:
        """drawing -> drawn, for the holder of `version`."""
        return self._transition(
            event_id, version, (DRAW_IN_PROGRESS,), DRAW_DONE, drawn_at=datetime.utcnow()
        ) is not None

    def release_draw(self, event_id: int, version: int) -> bool:
        """drawing -> open, for the holder of `version`."""
        return self._transition(
            event_id, version, (DRAW_IN_PROGRESS,), DRAW_OPEN, drawn_at=None
        ) is not None

    def hold_draw(self, event_id: int, version: int, force: bool = False) -> int | None:
        """
        open/drawn -> drawing, so a reset can clear the event. With force, a
        "drawing" event is taken over as well.
        """
        sources = (DRAW_OPEN, DRAW_DONE, DRAW_IN_PROGRESS) if force else (DRAW_OPEN, DRAW_DONE)
        return self._transition(event_id, version, sources, DRAW_IN_PROGRESS)

    def _transition(self, event_id: int, version: int, sources: tuple, status: str, **extra) -> int | None:
        query = Event.query.filter(
            Event.id == event_id,
            Event.draw_version == version,
            Event.draw_status.in_(sources),
        )
        ok = self._conditional_update(
            query,
            {"draw_status": status, "draw_version": Event.draw_version + 1, **extra},
            "move event %s to %s" % (event_id, status),
        )
        return version + 1 if ok else None

    def _conditional_update(self, query, values: dict, what: str) -> bool:
        try:
            updated = query.update(values, synchronize_session=False)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to %s", what)
            return False
        if updated != 1:
            db.session.rollback()
            return False
        return self._commit(what)

    def _commit(self, what: str) -> bool:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to %s", what)
            return False
        return True

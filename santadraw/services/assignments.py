from __future__ import annotations

import logging
import random
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from ..models import DRAW_DONE, DRAW_IN_PROGRESS

logger = logging.getLogger(__name__)

REVEAL_IDEMPOTENT = "idempotent"
REVEAL_ONCE = "once"
REVEAL_POLICIES = (REVEAL_IDEMPOTENT, REVEAL_ONCE)


class AssignmentError(RuntimeError):
    pass


class InsufficientParticipants(AssignmentError):
    pass


class AlreadyDrawn(AssignmentError):
    pass


class AllDrawn(AssignmentError):
    pass


class PersistenceFailure(AssignmentError):
    pass


class ConcurrentDrawConflict(AssignmentError):
    pass


class UnknownEvent(AssignmentError):
    pass


class UnknownParticipant(AssignmentError):
    pass


class DrawLocked(AssignmentError):
    """Participant list changed after the draw ran."""


class DrawNotFinished(AssignmentError):
    pass


@dataclass(frozen=True)
class Reveal:
    giver: Any
    recipient: Any


def _participant_id(p) -> int:
    return getattr(p, "id", p)


def compute_assignment(participants: Iterable, rng: random.Random | None = None) -> dict[int, int]:
    """
    Random derangement over the participants' ids: giver_id -> receiver_id.

    Shuffles the ids and rejects any permutation with a fixed point. Derangements
    exist for every n >= 2 and roughly 1/e of permutations are derangements, so
    the loop ends after a handful of shuffles.
    """
    ids = list(dict.fromkeys(_participant_id(p) for p in participants))
    if len(ids) < 2:
        raise InsufficientParticipants(
            f"Need at least 2 participants to draw, got {len(ids)}."
        )

    rng = rng or random.SystemRandom()
    assigned = ids[:]
    while True:
        rng.shuffle(assigned)
        if all(a != b for a, b in zip(ids, assigned)):
            break

    return dict(zip(ids, assigned))


class AssignmentEngine:
    """
    Runs, reveals and resets draws against a participant store.

    Draws and resets are serialized per event by an in-process lock; the store's
    versioned claim serializes them across processes.
    """

    def __init__(
        self,
        store,
        rng: random.Random | None = None,
        reveal_policy: str = REVEAL_IDEMPOTENT,
        lock_timeout: float = 5.0,
    ):
        if reveal_policy not in REVEAL_POLICIES:
            raise ValueError(f"Unknown reveal policy: {reveal_policy!r}")
        self.store = store
        self.rng = rng
        self.reveal_policy = reveal_policy
        self.lock_timeout = lock_timeout
        # Entries drop out once no caller holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @contextmanager
    def _event_lock(self, event_id: int):
        with self._locks_guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[event_id] = lock
        if not lock.acquire(timeout=self.lock_timeout):
            raise ConcurrentDrawConflict(f"Event {event_id} is busy with another draw.")
        try:
            yield
        finally:
            lock.release()

    def _get_event(self, event_id: int):
        event = self.store.get_event(event_id)
        if event is None:
            raise UnknownEvent(f"No such event: {event_id}")
        return event

    def _moved_on(self, event_id: int, version: int) -> bool:
        event = self.store.get_event(event_id)
        return event is None or event.draw_version != version

    # --- Draw ---

    def run_draw(self, event_id: int) -> dict[int, int]:
        """Draw the whole event, or return the assignment already committed."""
        with self._event_lock(event_id):
            return self._ensure_assignment(event_id)

    def _ensure_assignment(self, event_id: int) -> dict[int, int]:
        event = self._get_event(event_id)
        if event.draw_status == DRAW_DONE:
            return self._committed_mapping(event_id)
        if event.draw_status == DRAW_IN_PROGRESS:
            raise ConcurrentDrawConflict(f"Event {event_id} is being drawn by another request.")

        version = event.draw_version
        participants = self.store.list_participants(event_id)
        mapping = compute_assignment(participants, self.rng)

        held = self.store.claim_draw(event_id, version)
        if held is None:
            event = self._get_event(event_id)
            if event.draw_status == DRAW_DONE:
                logger.info("Event %s was drawn concurrently; using the committed assignment", event_id)
                return self._committed_mapping(event_id)
            raise ConcurrentDrawConflict(f"Event {event_id} changed while drawing.")

        self._persist(event_id, held, mapping)
        logger.info("Committed draw for event %s (%d participants)", event_id, len(mapping))
        return mapping

    def _persist(self, event_id: int, held: int, mapping: dict[int, int]) -> None:
        applied: list[int] = []
        for giver_id, receiver_id in mapping.items():
            ok = self.store.update_participant(giver_id, {"assigned_to_id": receiver_id, "is_drawn": True})
            if not ok:
                self._rollback(event_id, held, applied)
                raise PersistenceFailure(f"Could not save the assignment of participant {giver_id}.")
            applied.append(giver_id)

        if not self.store.complete_draw(event_id, held):
            self._rollback(event_id, held, applied)
            if self._moved_on(event_id, held):
                raise ConcurrentDrawConflict(f"Event {event_id} was reset while its draw was being saved.")
            raise PersistenceFailure(f"Could not mark event {event_id} as drawn.")

    def _rollback(self, event_id: int, held: int, applied: list[int]) -> None:
        failed = [
            pid for pid in applied
            if not self.store.update_participant(pid, {"assigned_to_id": None, "is_drawn": False})
        ]
        if failed:
            # Event stays in "drawing"; reset_draw(force=True) clears it.
            logger.error(
                "Rollback of event %s left %d participant(s) assigned: %s",
                event_id, len(failed), failed,
            )
            return
        if not self.store.release_draw(event_id, held):
            logger.error("Could not reopen event %s after a failed draw", event_id)
            return
        logger.warning("Draw for event %s rolled back", event_id)

    def _committed_mapping(self, event_id: int) -> dict[int, int]:
        return {p.id: p.assigned_to_id for p in self.store.list_participants(event_id)}

    # --- Reveal ---

    def draw_next(self, event_id: int, participant_id: int | None = None) -> Reveal:
        """
        Reveal a recipient, drawing the event first if needed.

        With participant_id, reveal for that participant; a repeated reveal returns
        the same recipient under the idempotent policy and raises AlreadyDrawn under
        the "once" policy. Without it, reveal for the next participant who has not
        revealed yet, raising AllDrawn when nobody is left. The reveal stamp is
        conditional in the store, so two processes never hand out the same giver.
        """
        with self._event_lock(event_id):
            self._ensure_assignment(event_id)
            participants = self.store.list_participants(event_id)
            by_id = {p.id: p for p in participants}

            if participant_id is None:
                for giver in participants:
                    if giver.revealed_at is None and self._stamp_reveal(giver):
                        return Reveal(giver, self._recipient(event_id, giver, by_id))
                raise AllDrawn(f"Every participant of event {event_id} has already drawn.")

            giver = by_id.get(participant_id)
            if giver is None:
                raise UnknownParticipant(f"Participant {participant_id} is not part of event {event_id}.")
            if giver.revealed_at is not None or not self._stamp_reveal(giver):
                if self.reveal_policy == REVEAL_ONCE:
                    raise AlreadyDrawn(f"{giver.name} has already drawn.")
            return Reveal(giver, self._recipient(event_id, giver, by_id))

    def _stamp_reveal(self, giver) -> bool:
        """True if this call revealed for giver, False if another caller got there first."""
        if self.store.mark_revealed(giver.id, datetime.utcnow()):
            return True
        if self._revealed_elsewhere(giver):
            return False
        raise PersistenceFailure(f"Could not record the reveal for participant {giver.id}.")

    def _revealed_elsewhere(self, giver) -> bool:
        for p in self.store.list_participants(giver.event_id):
            if p.id == giver.id:
                return p.revealed_at is not None
        return False

    def _recipient(self, event_id: int, giver, by_id: dict):
        recipient = by_id.get(giver.assigned_to_id)
        if recipient is None:
            raise ConcurrentDrawConflict(f"The draw of event {event_id} changed during the reveal.")
        return recipient

    # --- Reset ---

    def reset_draw(self, event_id: int, force: bool = False) -> int:
        """
        Clear every assignment and reveal of the event and reopen it.

        The event is held in "drawing" while participants are cleared, so a failure
        part way never leaves it looking drawn. A reset refuses an event that is
        being drawn; force=True takes it over anyway, which is how an event left in
        "drawing" by a failed draw or reset is recovered. Only force when no draw is
        running.
        """
        with self._event_lock(event_id):
            event = self._get_event(event_id)
            version = event.draw_version
            if event.draw_status == DRAW_IN_PROGRESS and not force:
                raise ConcurrentDrawConflict(f"Event {event_id} is being drawn; reset it once the draw ends.")

            held = self.store.hold_draw(event_id, version, force=force)
            if held is None:
                if self._moved_on(event_id, version):
                    raise ConcurrentDrawConflict(f"Event {event_id} changed before it could be reset.")
                raise PersistenceFailure(f"Could not lock event {event_id} for reset.")

            participants = self.store.list_participants(event_id)
            for p in participants:
                ok = self.store.update_participant(
                    p.id, {"assigned_to_id": None, "is_drawn": False, "revealed_at": None}
                )
                if not ok:
                    raise PersistenceFailure(f"Could not clear participant {p.id}; run the reset again with force.")

            if not self.store.release_draw(event_id, held):
                raise PersistenceFailure(f"Could not reopen event {event_id}.")
            logger.info("Reset draw for event %s (%d participants)", event_id, len(participants))
            return len(participants)

import random
import threading
from types import SimpleNamespace

import pytest

from santadraw import create_app
from santadraw.extensions import db
from santadraw.models import Event, Participant, User, DRAW_OPEN, DRAW_IN_PROGRESS, DRAW_DONE
from santadraw.security import hash_password


class MemoryStore:
    """
    Participant store kept in dicts. `fail_updates_after` makes every
    update_participant call past that count report failure.
    """

    def __init__(self):
        self.events = {}
        self.participants = {}
        self.lock = threading.Lock()
        self.update_calls = 0
        self.fail_updates_after = None
        self.claims = 0

    def add_event(self, event_id, names, owner_id=1):
        self.events[event_id] = SimpleNamespace(
            id=event_id, owner_id=owner_id, name=f"event {event_id}",
            draw_status=DRAW_OPEN, draw_version=0,
        )
        next_id = max(self.participants, default=0) + 1
        for offset, name in enumerate(names):
            pid = next_id + offset
            self.participants[pid] = SimpleNamespace(
                id=pid, event_id=event_id, name=name, email=None,
                is_drawn=False, assigned_to_id=None, revealed_at=None,
            )
        return self.events[event_id]

    def get_event(self, event_id):
        return self.events.get(event_id)

    def list_participants(self, event_id):
        return [p for _, p in sorted(self.participants.items()) if p.event_id == event_id]

    def list_events_by_user(self, user_id):
        return [e for e in self.events.values() if e.owner_id == user_id]

    def update_participant(self, participant_id, fields):
        with self.lock:
            self.update_calls += 1
            if self.fail_updates_after is not None and self.update_calls > self.fail_updates_after:
                return False
            p = self.participants.get(participant_id)
            if p is None:
                return False
            for key, value in fields.items():
                setattr(p, key, value)
            return True

    def mark_revealed(self, participant_id, at):
        with self.lock:
            p = self.participants.get(participant_id)
            if p is None or p.revealed_at is not None:
                return False
            p.revealed_at = at
            return True

    def _transition(self, event_id, version, sources, status):
        with self.lock:
            event = self.events[event_id]
            if event.draw_version != version or event.draw_status not in sources:
                return None
            event.draw_status = status
            event.draw_version += 1
            return event.draw_version

    def claim_draw(self, event_id, version):
        held = self._transition(event_id, version, (DRAW_OPEN,), DRAW_IN_PROGRESS)
        if held is not None:
            self.claims += 1
        return held

    def complete_draw(self, event_id, version):
        return self._transition(event_id, version, (DRAW_IN_PROGRESS,), DRAW_DONE) is not None

    def release_draw(self, event_id, version):
        return self._transition(event_id, version, (DRAW_IN_PROGRESS,), DRAW_OPEN) is not None

    def hold_draw(self, event_id, version, force=False):
        sources = (DRAW_OPEN, DRAW_DONE, DRAW_IN_PROGRESS) if force else (DRAW_OPEN, DRAW_DONE)
        return self._transition(event_id, version, sources, DRAW_IN_PROGRESS)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "WTF_CSRF_ENABLED": False,
        "SANTA_RNG": random.Random(1234),
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(email="owner@example.com", name="Owner", password="correct horse"):
        user = User(email=email, name=name, password_hash=hash_password(password))
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_event(app, make_user):
    def _make_event(names=("Ana", "Bruno", "Carla"), owner=None, name="Office party"):
        owner = owner or make_user()
        event = Event(owner_id=owner.id, name=name)
        db.session.add(event)
        db.session.flush()
        for n in names:
            db.session.add(Participant(event_id=event.id, name=n))
        db.session.commit()
        return event
    return _make_event


@pytest.fixture
def logged_in(client, make_user):
    user = make_user()
    resp = client.post("/auth/login", json={"email": user.email, "password": "correct horse"})
    assert resp.status_code == 200
    return user

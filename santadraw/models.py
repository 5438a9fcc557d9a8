from datetime import datetime
from flask_login import UserMixin
from .extensions import db, login_manager

DRAW_OPEN = "open"
DRAW_IN_PROGRESS = "drawing"
DRAW_DONE = "drawn"


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(64), nullable=False)

    # passlib argon2 hash
    password_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    events = db.relationship(
        "Event",
        back_populates="owner",
        cascade="all, delete-orphan",
        order_by="Event.created_at.desc()",
    )


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # --- Draw bookkeeping ---
    # open -> drawing -> drawn; reset goes back to open.
    # draw_version is bumped on every transition and guards the open -> drawing claim.
    draw_status = db.Column(db.String(16), default=DRAW_OPEN, nullable=False)
    draw_version = db.Column(db.Integer, default=0, nullable=False)
    drawn_at = db.Column(db.DateTime, nullable=True)

    owner = db.relationship("User", back_populates="events")
    participants = db.relationship(
        "Participant",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Participant.id",
        foreign_keys="Participant.event_id",
    )

    @property
    def is_drawn(self) -> bool:
        return self.draw_status == DRAW_DONE


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    # --- Assignments ---
    # is_drawn and assigned_to_id are always written together by the draw.
    is_drawn = db.Column(db.Boolean, default=False, nullable=False)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("participants.id", ondelete="SET NULL"), nullable=True)
    assigned_to = db.relationship(
        "Participant",
        remote_side=[id],
        foreign_keys=[assigned_to_id],
        uselist=False,
        post_update=True,
    )
    # Set when the participant reveals their recipient.
    revealed_at = db.Column(db.DateTime, nullable=True)

    event = db.relationship("Event", back_populates="participants", foreign_keys=[event_id])

    __table_args__ = (
        db.UniqueConstraint("event_id", "name", name="uq_participant_event_name"),
    )


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))

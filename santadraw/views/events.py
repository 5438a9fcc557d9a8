from __future__ import annotations

from flask import Blueprint, Response, jsonify, request, url_for
from flask_login import current_user

from ..extensions import get_engine
from ..policies import LoginRequiredMixin, EventOwnerMixin
from ..security import make_reveal_token
from ..services.events import (
    add_participants,
    create_event,
    delete_event,
    event_summary,
    participant_summary,
    remove_participant,
)
from ..services.export import event_csv
from .errors import error_response
from .forms import request_data, text_field

events_bp = Blueprint("events", __name__, url_prefix="/events")


def _event_detail(event) -> dict:
    detail = event_summary(event)
    detail["participants"] = [participant_summary(p) for p in event.participants]
    return detail


class DashboardView(LoginRequiredMixin):
    def get(self):
        events = get_engine().store.list_events_by_user(current_user.id)
        return jsonify(events=[event_summary(e) for e in events])

    def post(self):
        name = text_field(request_data(), "name").strip()
        if not name:
            return error_response("BadRequest", "Event name is required.", 400)

        event = create_event(current_user.id, name)
        return jsonify(event=_event_detail(event)), 201


class EventView(EventOwnerMixin):
    def get(self, event):
        return jsonify(event=_event_detail(event))

    def delete(self, event):
        delete_event(event)
        return jsonify(ok=True)


class ParticipantsView(EventOwnerMixin):
    def post(self, event):
        data = request.get_json(silent=True)
        entries = data.get("participants") if isinstance(data, dict) else None
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            return error_response("BadRequest", 'Expected {"participants": [{"name": ..., "email": ...}]}.', 400)

        try:
            added = add_participants(event, entries)
        except ValueError as e:
            return error_response("BadRequest", str(e), 400)
        return jsonify(participants=[participant_summary(p) for p in added]), 201


class ParticipantView(EventOwnerMixin):
    def delete(self, event, participant_id: int):
        was_reset = remove_participant(event, participant_id)
        return jsonify(ok=True, draw_reset=was_reset)


class DrawView(EventOwnerMixin):
    """Runs the whole draw; the assignment stays hidden until each reveal."""
    def post(self, event):
        mapping = get_engine().run_draw(event.id)
        return jsonify(event=event_summary(event), assigned=len(mapping))


class DrawNextView(EventOwnerMixin):
    """Sequential reveal, e.g. passing one device around the table."""
    def post(self, event):
        reveal = get_engine().draw_next(event.id)
        return jsonify(giver=reveal.giver.name, recipient=reveal.recipient.name)


class ResetDrawView(EventOwnerMixin):
    def post(self, event):
        cleared = get_engine().reset_draw(event.id)
        return jsonify(event=event_summary(event), cleared=cleared)


class RevealLinksView(EventOwnerMixin):
    def get(self, event):
        links = [
            {
                "participant_id": p.id,
                "name": p.name,
                "url": url_for("reveal.reveal", token=make_reveal_token(event.id, p.id), _external=True),
            }
            for p in event.participants
        ]
        return jsonify(links=links)


class ExportView(EventOwnerMixin):
    def get(self, event):
        body = event_csv(event, get_engine().store.list_participants(event.id))
        return Response(
            body,
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="event_{event.id}_draw.csv"'},
        )


events_bp.add_url_rule("", view_func=DashboardView.as_view("dashboard"), methods=["GET", "POST"])
events_bp.add_url_rule("/<int:event_id>", view_func=EventView.as_view("event"), methods=["GET", "DELETE"])
events_bp.add_url_rule(
    "/<int:event_id>/participants",
    view_func=ParticipantsView.as_view("participants"),
    methods=["POST"],
)
events_bp.add_url_rule(
    "/<int:event_id>/participants/<int:participant_id>",
    view_func=ParticipantView.as_view("participant"),
    methods=["DELETE"],
)

events_bp.add_url_rule("/<int:event_id>/draw", view_func=DrawView.as_view("draw"), methods=["POST"])
events_bp.add_url_rule("/<int:event_id>/draw/next", view_func=DrawNextView.as_view("draw_next"), methods=["POST"])
events_bp.add_url_rule("/<int:event_id>/draw/reset", view_func=ResetDrawView.as_view("reset_draw"), methods=["POST"])

events_bp.add_url_rule("/<int:event_id>/links", view_func=RevealLinksView.as_view("links"), methods=["GET"])
events_bp.add_url_rule("/<int:event_id>/export.csv", view_func=ExportView.as_view("export"), methods=["GET"])

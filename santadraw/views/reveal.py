from __future__ import annotations

from flask import Blueprint, jsonify
from flask.views import MethodView

from ..extensions import get_engine
from ..security import read_reveal_token
from .errors import error_response


reveal_bp = Blueprint("reveal", __name__)


class RevealView(MethodView):
    """
    A participant's private link. No login: the token is the credential.
    """
    def get(self, token: str):
        try:
            event_id, participant_id = read_reveal_token(token)
        except ValueError:
            return error_response("NotFound", "This link is not valid.", 404)

        reveal = get_engine().draw_next(event_id, participant_id)
        return jsonify(giver=reveal.giver.name, recipient=reveal.recipient.name)


reveal_bp.add_url_rule("/reveal/<token>", view_func=RevealView.as_view("reveal"))

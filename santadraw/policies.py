from __future__ import annotations

from flask.views import MethodView
from flask_login import current_user

from .extensions import db, login_manager
from .models import Event
from .services.assignments import UnknownEvent


def owned_event(event_id: int) -> Event:
    """The current user's event; someone else's event looks like a missing one."""
    event = db.session.get(Event, event_id)
    if event is None or event.owner_id != current_user.id:
        raise UnknownEvent(f"No such event: {event_id}")
    return event


class LoginRequiredMixin(MethodView):
    def dispatch_request(self, *args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        return super().dispatch_request(*args, **kwargs)


class EventOwnerMixin(LoginRequiredMixin):
    """
    Resolves the <event_id> URL argument to the current user's Event and passes
    it to the handler as `event`.
    """
    def dispatch_request(self, *args, **kwargs):
        if not current_user.is_authenticated:
            return super().dispatch_request(*args, **kwargs)
        event_id = kwargs.pop("event_id")
        kwargs["event"] = owned_event(event_id)
        return super().dispatch_request(*args, **kwargs)

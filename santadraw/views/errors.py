from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import BadRequest

from ..services.assignments import (
    AssignmentError,
    InsufficientParticipants,
    AlreadyDrawn,
    AllDrawn,
    PersistenceFailure,
    ConcurrentDrawConflict,
    UnknownEvent,
    UnknownParticipant,
    DrawLocked,
    DrawNotFinished,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    InsufficientParticipants: 400,
    UnknownEvent: 404,
    UnknownParticipant: 404,
    AlreadyDrawn: 409,
    AllDrawn: 409,
    ConcurrentDrawConflict: 409,
    DrawLocked: 409,
    DrawNotFinished: 409,
    PersistenceFailure: 503,
}


def error_response(name: str, message: str, status: int):
    return jsonify(error=name, message=message), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AssignmentError)
    def handle_assignment_error(e: AssignmentError):
        status = STATUS_BY_ERROR.get(type(e), 500)
        if status >= 500:
            logger.error("%s: %s", type(e).__name__, e)
        return error_response(type(e).__name__, str(e), status)

    @app.errorhandler(BadRequest)
    def handle_bad_request(e: BadRequest):
        return error_response("BadRequest", e.description, 400)

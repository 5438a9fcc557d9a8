from __future__ import annotations

from flask import request
from werkzeug.exceptions import BadRequest


def request_data() -> dict:
    """JSON object body, or form fields. Anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise BadRequest("Expected a JSON object.")
    return data


def text_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string.")
    return value

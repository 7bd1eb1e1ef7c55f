"""Helpers shared by the route blueprints."""

from __future__ import annotations

from typing import Any, Dict

from flask import current_app, jsonify, request

from ..errors import ValidationError
from ..scheduling import Term


def json_error(message: str, status: int, details: Dict[str, Any] | None = None):
    payload: Dict[str, Any] = {"message": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def json_object() -> Dict[str, Any]:
    """Return the request's JSON object; a missing body reads as empty."""

    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be JSON.")
    return payload


def current_term() -> Term:
    """The scheduling term the application was configured with."""

    return current_app.config["SIS_TERM"]


__all__ = ["json_error", "json_object", "current_term"]

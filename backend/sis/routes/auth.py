"""Login and bearer-token authorization."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from flask import Blueprint, current_app, g, jsonify, request

from ..db import (
    get_secretaries_collection,
    get_students_collection,
    get_users_collection,
    to_object_id,
)
from ..errors import AuthenticationError, ForbiddenError, ValidationError
from ..security import Capability, Role, issue_token, read_token, verify_password
from ..utils.text import clean_string
from .common import json_object

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])

_INVALID_LOGIN = "Invalid ID number or password"


def _authenticate() -> None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise AuthenticationError("Not authorized, no token")

    token = header[len("Bearer "):].strip()
    user_id = read_token(
        current_app.config["SECRET_KEY"],
        token,
        current_app.config["SIS_TOKEN_MAX_AGE"],
    )

    object_id = to_object_id(user_id)
    user = get_users_collection().find_one({"_id": object_id}) if object_id else None
    if not user:
        raise AuthenticationError("Not authorized, user not found")

    try:
        role = Role(user.get("role"))
    except ValueError:
        raise ForbiddenError(f"User role {user.get('role')} is not recognised") from None

    g.current_user = user
    g.role = role


def require_login(func: _F) -> _F:
    """Resolve the bearer token into ``g.current_user`` and ``g.role``."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        _authenticate()
        return func(*args, **kwargs)

    return cast(_F, wrapper)


def require_capability(capability: Capability) -> Callable[[_F], _F]:
    """Allow the request only when the caller's role grants ``capability``."""

    def decorator(func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            _authenticate()
            if not g.role.can(capability):
                logger.info(
                    "Denied %s to %s (%s)",
                    capability.value,
                    g.current_user.get("username"),
                    g.role.value,
                )
                raise ForbiddenError(
                    f"User role {g.role.value} is not authorized to access this route"
                )
            return func(*args, **kwargs)

        return cast(_F, wrapper)

    return decorator


def _profile_collection(role: Role):
    if role is Role.SECRETARY:
        return get_secretaries_collection()
    return get_students_collection()


@auth_bp.post("/login")
def login():
    payload = json_object()
    id_number = clean_string(payload.get("idNumber"))
    password = payload.get("password")
    role = Role.parse(payload.get("role"), default=Role.STUDENT)

    if not id_number or not isinstance(password, str) or not password:
        raise ValidationError("ID number and password are required")

    profile = _profile_collection(role).find_one({"idNumber": id_number})
    user = (
        get_users_collection().find_one({"_id": profile.get("user")})
        if profile
        else None
    )
    if (
        not user
        or user.get("role") != role.value
        or not verify_password(user.get("password"), password)
    ):
        logger.info("Failed %s login for ID number %s", role.value, id_number)
        raise AuthenticationError(_INVALID_LOGIN)

    body = {
        "_id": str(profile["_id"]),
        "name": profile.get("name"),
        "idNumber": profile.get("idNumber"),
        "role": role.value,
        "token": issue_token(current_app.config["SECRET_KEY"], user["_id"]),
    }
    if role is Role.STUDENT:
        body["studentNumber"] = profile.get("studentNumber")
    return jsonify(body)


@auth_bp.get("/me")
@require_login
def me():
    user = g.current_user
    profile = _profile_collection(g.role).find_one({"user": user["_id"]}) or {}
    return jsonify(
        {
            "_id": str(user["_id"]),
            "username": user.get("username"),
            "email": user.get("email"),
            "role": g.role.value,
            "capabilities": sorted(cap.value for cap in g.role.capabilities),
            "name": profile.get("name"),
            "idNumber": profile.get("idNumber"),
        }
    )


__all__ = ["auth_bp", "require_login", "require_capability"]

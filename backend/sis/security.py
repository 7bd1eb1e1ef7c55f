"""Roles, capabilities, password hashing and bearer tokens."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthenticationError, ValidationError

_TOKEN_SALT = "sis-auth-token"


class Capability(str, Enum):
    SEARCH_COURSES = "search_courses"
    VIEW_OWN_SCHEDULE = "view_own_schedule"
    MANAGE_OWN_ENROLLMENT = "manage_own_enrollment"
    VIEW_OWN_GRADES = "view_own_grades"
    MANAGE_SCHEDULE = "manage_schedule"
    MANAGE_ENROLLMENT = "manage_enrollment"
    MANAGE_STUDENTS = "manage_students"
    MANAGE_GRADES = "manage_grades"
    VIEW_REPORTS = "view_reports"


class Role(str, Enum):
    STUDENT = "student"
    SECRETARY = "department_secretary"

    @classmethod
    def parse(cls, value, default: "Role | None" = None) -> "Role":
        if value in (None, "") and default is not None:
            return default
        try:
            return cls(str(value).strip())
        except ValueError:
            allowed = ", ".join(role.value for role in cls)
            raise ValidationError(f"role must be one of: {allowed}.") from None

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES[self]

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES[self]


ROLE_CAPABILITIES = {
    Role.STUDENT: frozenset(
        {
            Capability.SEARCH_COURSES,
            Capability.VIEW_OWN_SCHEDULE,
            Capability.MANAGE_OWN_ENROLLMENT,
            Capability.VIEW_OWN_GRADES,
        }
    ),
    Role.SECRETARY: frozenset(
        {
            Capability.SEARCH_COURSES,
            Capability.MANAGE_SCHEDULE,
            Capability.MANAGE_ENROLLMENT,
            Capability.MANAGE_STUDENTS,
            Capability.MANAGE_GRADES,
            Capability.VIEW_REPORTS,
        }
    ),
}


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)


def issue_token(secret_key: str, user_id) -> str:
    return _serializer(secret_key).dumps({"id": str(user_id)})


def read_token(secret_key: str, token: str, max_age: int) -> str:
    """Return the user id carried by ``token`` or raise AuthenticationError."""

    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        raise AuthenticationError("Not authorized, token expired") from None
    except BadSignature:
        raise AuthenticationError("Not authorized, token failed") from None

    user_id = payload.get("id") if isinstance(payload, dict) else None
    if not user_id:
        raise AuthenticationError("Not authorized, token failed")
    return user_id


__all__ = [
    "Capability",
    "Role",
    "ROLE_CAPABILITIES",
    "hash_password",
    "verify_password",
    "issue_token",
    "read_token",
]

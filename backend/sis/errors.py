"""Exceptions raised by the service layer and mapped to HTTP responses."""

from __future__ import annotations

from typing import Any, Dict


class ServiceError(Exception):
    """Base class for errors that terminate a request with a known status."""

    status = 500

    def __init__(self, message: str, details: Dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ServiceError):
    status = 400


class ConflictError(ServiceError):
    """Duplicate enrollment, full offering, time/classroom clash or duplicate key."""

    status = 400


class NotFoundError(ServiceError):
    status = 404


class AuthenticationError(ServiceError):
    status = 401


class ForbiddenError(ServiceError):
    status = 403


__all__ = [
    "ServiceError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "AuthenticationError",
    "ForbiddenError",
]

# Overview: Service error taxonomy; routes never pick status codes themselves.

"""
Every service failure is one of these. The app factory registers a single
handler that renders them as ``{"success": false, "error": ...}`` with the
error's status code.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        payload: dict | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.payload = payload or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        body.update(self.payload)
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthError(ServiceError):
    """Missing, invalid or expired bearer token."""
    status_code = 401


class ForbiddenError(ServiceError):
    """Resource exists but belongs to someone else."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ValidationError(ServiceError):
    """400-level input problem."""
    status_code = 400


class LifecycleError(ValidationError):
    """Operation not allowed in the product's current state."""


class ConflictError(ServiceError):
    """Double claim / double redeem. Reported as 400, not 409."""
    status_code = 400


class ExternalServiceError(ServiceError):
    """Pinning (or other third-party) call failed."""
    status_code = 500

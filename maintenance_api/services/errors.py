from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    """
    Base class for domain errors raised by services.

    The API layer maps each subclass to an HTTP status code through a global
    exception handler, so services never import FastAPI.
    """

    status_code: int = 400
    error_type: str = "service_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(ServiceError):
    status_code = 404
    error_type = "not_found"


class ConflictError(ServiceError):
    status_code = 409
    error_type = "conflict"


class ValidationFailed(ServiceError):
    status_code = 422
    error_type = "validation_failed"


class PermissionDenied(ServiceError):
    status_code = 403
    error_type = "permission_denied"


class ProfileUnavailable(ServiceError):
    """Raised when the caller's role cannot be established."""
    status_code = 503
    error_type = "profile_unavailable"

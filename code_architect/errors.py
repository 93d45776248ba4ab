# code_architect/errors.py
"""Typed failures shared by the store, the services and the HTTP surface.

Every class carries the status code it maps to, so route handlers never
translate errors by hand. The handlers registered in ``main`` render all of
them as ``{"error": ..., "details": ...}``.
"""
from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidInput(AppError):
    status_code = 400
    default_message = "Invalid input"


class ConstraintViolation(AppError):
    status_code = 400
    default_message = "Constraint violation"


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Not authenticated"


class Unauthorized(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class CollaboratorUnavailable(AppError):
    status_code = 500
    default_message = "AI collaborator unavailable"

"""
core/errors.py -- Error taxonomy shared by the service layer and the HTTP layer.

Services raise these; api/main.py owns the single exception handler that turns
them into the JSON error envelope. Each class carries its own HTTP status and
machine-readable code so routes never map errors by hand.

  InvalidInputError  400  bad or missing fields, weak password
  UnauthorizedError  401  bad credentials, missing/invalid/expired token
  ForbiddenError     403  ownership mismatch
  NotFoundError      404  resource does not exist
  ConflictError      409  duplicate email
  InternalError      500  store or hashing failure (details never leaked)
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors surfaced to the HTTP boundary."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, details: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = list(self.details)
        return body


class InvalidInputError(ServiceError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input."


class UnauthorizedError(ServiceError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class ForbiddenError(ServiceError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have access to this resource."


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class ConflictError(ServiceError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class InternalError(ServiceError):
    status_code = 500
    code = "internal_error"

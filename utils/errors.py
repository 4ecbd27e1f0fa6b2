"""
Typed application errors.

Every domain failure is raised as an ``AppError`` subclass carrying the HTTP
status code and a user-facing message.  They propagate to the single error
boundary registered in ``api.middleware.register_error_handlers``.
"""

from __future__ import annotations


class AppError(Exception):
    """Base for all errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def status(self) -> str:
        """``fail`` for client errors, ``error`` for server errors."""
        return "fail" if self.status_code < 500 else "error"

    def to_dict(self) -> dict:
        return {"success": False, "status": self.status, "message": self.message}


# ── Taxonomy ───────────────────────────────────────────────────────────


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input data."


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication failed."


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found."


class DependencyError(AppError):
    status_code = 500
    default_message = "A required service is unavailable."


# ── Specific failures ──────────────────────────────────────────────────


class DeliveryError(DependencyError):
    default_message = "Message delivery failed."


class NoTokenError(AuthenticationError):
    default_message = "You are not logged in. Please log in to get access."


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid or expired token. Please log in again."


class UserNoLongerExistsError(AuthenticationError):
    default_message = "The user belonging to this token no longer exists."


class StalePasswordTokenError(AuthenticationError):
    default_message = "User recently changed password. Please log in again."


class InvalidCredentialsError(AuthenticationError):
    default_message = "Incorrect email or password."


class ForbiddenError(AuthorizationError):
    default_message = "You do not have permission to perform this action."


class ResetTokenInvalidError(ValidationError):
    default_message = "Token is invalid or has expired."

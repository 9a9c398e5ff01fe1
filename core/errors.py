"""
core/errors.py -- Application error taxonomy.

Every failure a request can end in is one of these classes. Each carries the
HTTP status it maps to, a stable machine-readable code, and a message that is
safe to show to the caller. api/main.py turns any AppError into
{"error": message, "code": code}; nothing else about the exception leaves the
process.

Layer rule: core/ is the kernel -- no project imports.
"""


class AppError(Exception):
    """Base class for expected, classified failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request."


class ConflictError(AppError):
    # Duplicate email-per-tenant or duplicate tenant domain.
    status_code = 400
    code = "conflict"
    default_message = "Resource already exists."


class UnauthenticatedError(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required."


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied."


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class ConfigurationError(AppError):
    status_code = 500
    code = "configuration_error"
    default_message = "Server configuration error."


class InternalError(AppError):
    status_code = 500
    code = "internal_error"

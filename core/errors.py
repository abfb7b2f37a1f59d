"""
core/errors.py -- Application error taxonomy.

Every failure a route can produce is one of these classes. api/main.py has a
single exception handler that turns any AppError into the JSON error envelope
{"message": ..., "code": ...}, so handlers and services raise and never build
error responses themselves.

Layer rule: core/ is the kernel. No imports from api/, auth/, or directory/.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class: carries an HTTP status, a machine-readable code and a message."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed"


class DuplicateIdentity(AppError):
    # Identity clashes answer 400, not 409.
    status_code = 400
    code = "duplicate_identity"
    message = "User already exists"


class AlreadyExists(AppError):
    status_code = 400
    code = "already_exists"
    message = "Already exists"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class IncorrectPassword(AppError):
    status_code = 401
    code = "incorrect_password"
    message = "Password is incorrect"


class InvalidOtp(AppError):
    status_code = 400
    code = "invalid_otp"
    message = "Code is not valid or expired"


class InvalidRefreshToken(AppError):
    status_code = 401
    code = "invalid_refresh_token"
    message = "Invalid refresh token"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Not allowed"


class InternalError(AppError):
    pass

"""
auth/errors.py -- Typed failures surfaced by the auth layer.

Every error carries a stable machine code, a user-facing message, and the HTTP
status the API layer should answer with. api/main.py registers one exception
handler for AuthError and renders all of them in the shared ErrorResponse
envelope, so routes can simply let these propagate.

Enumeration resistance: InvalidCredentials has one message for both "no such
user" and "wrong password". Do not subclass it to tell the two apart.
"""

from __future__ import annotations

from http import HTTPStatus


class AuthError(Exception):
    code: str = "auth_error"
    message: str = "Authentication error."
    status_code: int = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}

    def __eq__(self, other: object) -> bool:
        # Two failures of the same kind are indistinguishable to callers.
        return isinstance(other, AuthError) and type(other) is type(self) and other.message == self.message

    def __hash__(self) -> int:
        return hash((type(self), self.message))


class DuplicateUsername(AuthError):
    code = "duplicate_username"
    message = "Username already exists."
    status_code = HTTPStatus.CONFLICT


class PasswordMismatch(AuthError):
    code = "password_mismatch"
    message = "Passwords do not match."
    status_code = HTTPStatus.BAD_REQUEST


class InvalidCredentials(AuthError):
    code = "bad_credentials"
    message = "Invalid username or password."
    status_code = HTTPStatus.UNAUTHORIZED


class UserNotFound(AuthError):
    code = "not_found"
    message = "User not found."
    status_code = HTTPStatus.NOT_FOUND


class Unauthenticated(AuthError):
    code = "unauthorized"
    message = "Authentication required."
    status_code = HTTPStatus.UNAUTHORIZED


class Forbidden(AuthError):
    code = "forbidden"
    message = "Insufficient role."
    status_code = HTTPStatus.FORBIDDEN


class ServiceUnavailable(AuthError):
    code = "service_unavailable"
    message = "Authentication backend unavailable."
    status_code = HTTPStatus.SERVICE_UNAVAILABLE

# pizza42/errors.py
from __future__ import annotations


class OrderError(Exception):
    """Base for request failures that map straight onto an HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(OrderError):
    status_code = 401
    default_message = "Invalid or missing access token"


class TokenExpired(Unauthenticated):
    default_message = "Access token has expired"


class Forbidden(OrderError):
    status_code = 403
    default_message = "Insufficient permissions"
    reason = "missing_permission"


class EmailNotVerified(Forbidden):
    default_message = "Email must be verified before placing an order."
    reason = "email_not_verified"


class BadRequest(OrderError):
    status_code = 400
    default_message = "Bad request"


class InternalError(OrderError):
    pass


class MirrorError(Exception):
    """The profile store round trip failed. Callers log it and move on."""
